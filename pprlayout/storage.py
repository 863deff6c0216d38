"""Persistence of PPR indices and coordinate results."""

from __future__ import annotations

import json
import os
import struct
from pathlib import Path

from .models import CoordinateResult, GraphProcessorError, PPRIndex

PathLike = str | os.PathLike

_MAGIC = b"PPRL"
_HEADER = struct.Struct("<4scQ")
_FLOAT_KIND = b"d"
_INT_KIND = b"q"
_INFO_KIND = b"i"


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _write_records(path: PathLike, kind: bytes, item_format: str, values: list) -> None:
    body = struct.pack(f"<{len(values) * len(item_format)}{item_format[0]}", *values) \
        if len(set(item_format)) == 1 else b""
    with open(path, "wb") as handle:
        handle.write(_HEADER.pack(_MAGIC, kind, len(values) // len(item_format)))
        handle.write(body)


def _read_records(path: PathLike, kind: bytes, width: int, code: str) -> tuple:
    """Read a file written by ``_write_records``; ``width`` values per record."""
    data = Path(path).read_bytes()
    if len(data) < _HEADER.size:
        raise GraphProcessorError(f"{os.fspath(path)}: file too short")
    magic, found_kind, count = _HEADER.unpack_from(data)
    if magic != _MAGIC:
        raise GraphProcessorError(f"{os.fspath(path)}: not an index file")
    if found_kind != kind:
        raise GraphProcessorError(
            f"{os.fspath(path)}: unexpected record kind {found_kind!r}, wanted {kind!r}"
        )
    total = count * width
    expected = _HEADER.size + total * struct.calcsize(f"<{code}")
    if len(data) != expected:
        raise GraphProcessorError(
            f"{os.fspath(path)}: expected {expected} bytes, found {len(data)}"
        )
    return struct.unpack_from(f"<{total}{code}", data, _HEADER.size)


def _save_floats(path: PathLike, values: list[float]) -> None:
    values = [float(v) for v in values]
    with open(path, "wb") as handle:
        handle.write(_HEADER.pack(_MAGIC, _FLOAT_KIND, len(values)))
        handle.write(struct.pack(f"<{len(values)}d", *values))


def _load_floats(path: PathLike) -> list[float]:
    return list(_read_records(path, _FLOAT_KIND, 1, "d"))


def _save_ints(path: PathLike, values: list[int]) -> None:
    values = [int(v) for v in values]
    with open(path, "wb") as handle:
        handle.write(_HEADER.pack(_MAGIC, _INT_KIND, len(values)))
        handle.write(struct.pack(f"<{len(values)}q", *values))


def _load_ints(path: PathLike) -> list[int]:
    return list(_read_records(path, _INT_KIND, 1, "q"))


def _save_info(path: PathLike, info: dict[int, tuple[int, int]]) -> None:
    flat: list[int] = []
    for target, (offset, size) in sorted(info.items()):
        flat.extend((int(target), int(offset), int(size)))
    with open(path, "wb") as handle:
        handle.write(_HEADER.pack(_MAGIC, _INFO_KIND, len(info)))
        handle.write(struct.pack(f"<{len(flat)}q", *flat))


def _load_info(path: PathLike) -> dict[int, tuple[int, int]]:
    flat = _read_records(path, _INFO_KIND, 3, "q")
    triples = zip(flat[0::3], flat[1::3], flat[2::3])
    return {target: (offset, size) for target, offset, size in triples}


def save_dnpr(path: PathLike, values: list[float]) -> None:
    """Write degree-normalised PageRank values, creating parent directories."""
    target = Path(path)
    _ensure_parent(target)
    _save_floats(target, values)


def load_dnpr(path: PathLike) -> list[float]:
    """Read degree-normalised PageRank values.

    Raises OSError if the file cannot be read and GraphProcessorError if it
    is not a valid index file.
    """
    return _load_floats(path)


def save_backward_index(base_path: PathLike, index: PPRIndex | None) -> None:
    """Write the backward push index as ``.target``, ``.bwdidx`` and ``.bwdidx.info`` files."""
    if index is None:
        raise GraphProcessorError("no PPR index to save")
    base = os.fspath(base_path)
    _ensure_parent(Path(base))
    parts = (
        ("targets", base + ".target", lambda p: _save_ints(p, index.backward_idx_target)),
        ("backward index", base + ".bwdidx",
         lambda p: _save_floats(p, index.backward_idx_in_cluster)),
        ("backward info", base + ".bwdidx.info",
         lambda p: _save_info(p, index.backward_idx_info)),
    )
    for label, path, writer in parts:
        try:
            writer(path)
        except (OSError, struct.error) as exc:
            raise GraphProcessorError(f"failed to save {label}: {exc}") from exc


def load_backward_index(base_path: PathLike) -> PPRIndex:
    """Read a backward push index written by :func:`save_backward_index`."""
    base = os.fspath(base_path)
    loaded = []
    for label, path, reader in (
        ("targets", base + ".target", _load_ints),
        ("backward index", base + ".bwdidx", _load_floats),
        ("backward info", base + ".bwdidx.info", _load_info),
    ):
        try:
            loaded.append(reader(path))
        except (OSError, GraphProcessorError) as exc:
            raise GraphProcessorError(f"failed to load {label}: {exc}") from exc
    targets, values, info = loaded
    return PPRIndex(
        backward_idx_target=targets,
        backward_idx_in_cluster=values,
        backward_idx_info=info,
    )


def save_coordinates(result: CoordinateResult, path: PathLike) -> None:
    """Write a coordinate result as indented JSON, creating parent directories."""
    target = Path(path)
    _ensure_parent(target)
    try:
        text = json.dumps(result.to_dict(), indent=2, allow_nan=False)
    except ValueError as exc:
        raise GraphProcessorError(f"cannot encode coordinates: {exc}") from exc
    target.write_text(text + "\n", encoding="utf-8")


def load_coordinates(path: PathLike) -> CoordinateResult:
    """Read a coordinate result written by :func:`save_coordinates`."""
    with open(path, encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except ValueError as exc:
            raise GraphProcessorError(f"invalid coordinate file {os.fspath(path)}: {exc}") from exc
    if not isinstance(data, dict):
        raise GraphProcessorError(f"invalid coordinate file {os.fspath(path)}: not an object")
    return CoordinateResult.from_dict(data)


def _exists(path: Path) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def missing_dataset_files(base_path: PathLike, dataset_id: str, k: int) -> list[str]:
    """List descriptions of the dataset files that are absent, in a fixed order."""
    base = Path(base_path)
    louvain = base / "louvain"
    expected = (
        ("Graph file", base / "dataset" / f"{dataset_id}.txt"),
        ("Attribute file", base / "dataset" / f"{dataset_id}_attribute.txt"),
        ("Mapping file", louvain / "mapping-output" / f"{dataset_id}_{k}.dat"),
        ("Hierarchy file", louvain / "hierachy-output" / f"{dataset_id}_{k}.dat"),
        ("Root file", louvain / "hierachy-output" / f"{dataset_id}_{k}.root"),
    )
    return [f"{label}: {path}" for label, path in expected if not _exists(path)]