"""
Scene persistence: JSON, YAML and binary load/save with section selection.

The format is chosen from the file extension:

    .json         json module
    .yaml / .yml  PyYAML
    .bin          little-endian struct packing

Text documents have the layout:

    sfm_data_version: "0.3"
    views:          [{key: id, value: View fields}, ...]
    intrinsics:     [{key: id, value: {polymorphic_name: ..., fields}}, ...]
    extrinsics:     [{key: id, value: Pose fields}, ...]
    structure:      [{key: id, value: Landmark fields}, ...]
    control_points: [{key: id, value: Landmark fields}, ...]

Maps are stored as key/value lists so integer ids survive JSON. Binary
files store the version string followed by the five sections in the same
order, each prefixed with its byte length so unselected sections can be
skipped without decoding.
"""

import json
import struct
from pathlib import Path
from typing import Any, Dict, List, Tuple, Type
import logging

import numpy as np
import yaml

from .camera import (
    PinholeIntrinsic,
    PinholeIntrinsicBrownT2,
    PinholeIntrinsicFisheye,
    PinholeIntrinsicRadialK1,
    PinholeIntrinsicRadialK3,
)
from .intrinsics import IntrinsicBase
from .landmark import Landmark, Observation
from .pose import Pose
from .scene import Veta, VetaParts, valid_ids
from .spherical import IntrinsicSpherical
from .view import View

logger = logging.getLogger(__name__)

SFM_DATA_VERSION = '0.3'

# Persisted type name -> camera model
INTRINSIC_TYPES: Dict[str, Type[IntrinsicBase]] = {
    cls.TYPE_NAME: cls
    for cls in (
        PinholeIntrinsic,
        PinholeIntrinsicRadialK1,
        PinholeIntrinsicRadialK3,
        PinholeIntrinsicBrownT2,
        PinholeIntrinsicFisheye,
        IntrinsicSpherical,
    )
}

# (section name in documents, selection flag, attribute on Veta)
SECTIONS: List[Tuple[str, VetaParts, str]] = [
    ('views', VetaParts.VIEWS, 'views'),
    ('intrinsics', VetaParts.INTRINSICS, 'intrinsics'),
    ('extrinsics', VetaParts.EXTRINSICS, 'poses'),
    ('structure', VetaParts.STRUCTURE, 'structure'),
    ('control_points', VetaParts.CONTROL_POINTS, 'control_points'),
]

# Sections older documents may omit
OPTIONAL_SECTIONS = ('control_points',)

TEXT_FORMATS = ('json', 'yaml', 'yml')
BINARY_FORMATS = ('bin',)


def intrinsic_class(name: str) -> Type[IntrinsicBase]:
    """
    Look up a camera model by its persisted type name.

    Raises:
        ValueError: If the name is not registered
    """
    if name not in INTRINSIC_TYPES:
        raise ValueError(
            f"Unknown camera model '{name}', expected one of {sorted(INTRINSIC_TYPES)}"
        )
    return INTRINSIC_TYPES[name]


def intrinsic_to_dict(intrinsic: IntrinsicBase) -> Dict[str, Any]:
    data = {'polymorphic_name': intrinsic.TYPE_NAME}
    data.update(intrinsic.to_dict())
    return data


def intrinsic_from_dict(data: Dict[str, Any]) -> IntrinsicBase:
    """Rebuild an intrinsic from its fields and `polymorphic_name` tag."""
    return intrinsic_class(data['polymorphic_name']).from_dict(data)


# ----------------------------------------------------------------------
# Text documents
# ----------------------------------------------------------------------

_ENCODERS = {
    'views': lambda view: view.to_dict(),
    'intrinsics': intrinsic_to_dict,
    'extrinsics': lambda pose: pose.to_dict(),
    'structure': lambda landmark: landmark.to_dict(),
    'control_points': lambda landmark: landmark.to_dict(),
}

_DECODERS = {
    'views': View.from_dict,
    'intrinsics': intrinsic_from_dict,
    'extrinsics': Pose.from_dict,
    'structure': Landmark.from_dict,
    'control_points': Landmark.from_dict,
}


def to_document(veta: Veta, parts: VetaParts = VetaParts.ALL) -> Dict[str, Any]:
    """
    Build the serializable document of a scene.

    Unselected sections are written as empty lists.
    """
    parts = VetaParts(parts)
    document: Dict[str, Any] = {'sfm_data_version': SFM_DATA_VERSION}
    for name, flag, attribute in SECTIONS:
        entries = getattr(veta, attribute) if parts.has(flag) else {}
        encode = _ENCODERS[name]
        document[name] = [
            {'key': int(key), 'value': encode(value)}
            for key, value in entries.items()
        ]
    return document


def from_document(document: Dict[str, Any], parts: VetaParts = VetaParts.ALL) -> Veta:
    """
    Decode the selected sections of a document into a new scene.

    Raises:
        KeyError: If a selected required section or a required field is missing
        ValueError: On unknown camera models or malformed fields
    """
    parts = VetaParts(parts)
    if not isinstance(document, dict):
        raise ValueError(f"Scene document must be a mapping, got {type(document).__name__}")
    version = document.get('sfm_data_version')
    if version != SFM_DATA_VERSION:
        logger.debug(f"Reading document version {version}, current is {SFM_DATA_VERSION}")

    veta = Veta()
    for name, flag, attribute in SECTIONS:
        if not parts.has(flag):
            continue
        decode = _DECODERS[name]
        entries = document.get(name, []) if name in OPTIONAL_SECTIONS else document[name]
        setattr(veta, attribute, {
            int(entry['key']): decode(entry['value'])
            for entry in entries
        })
    return veta


# ----------------------------------------------------------------------
# Binary framing
# ----------------------------------------------------------------------

class _Reader:
    """Cursor over a bytes buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def unpack(self, fmt: str) -> Tuple:
        values = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += struct.calcsize(fmt)
        return values

    def u64(self) -> int:
        return self.unpack('<Q')[0]

    def f64s(self, count: int) -> List[float]:
        return list(self.unpack(f'<{count}d'))

    def string(self) -> str:
        length = self.u64()
        raw = self.data[self.offset:self.offset + length]
        if len(raw) != length:
            raise struct.error(f"String of {length} bytes truncated at offset {self.offset}")
        self.offset += length
        return raw.decode('utf-8')


def _pack_string(value: str) -> bytes:
    raw = value.encode('utf-8')
    return struct.pack('<Q', len(raw)) + raw


def _pack_landmark(key: int, landmark: Landmark) -> bytes:
    chunks = [struct.pack('<Q3dQ', key, *landmark.X, len(landmark.observations))]
    for view_id, obs in landmark.observations.items():
        has_color = obs.color is not None
        rgb = obs.color if has_color else (0, 0, 0)
        chunks.append(struct.pack('<QQ2dB3B', view_id, obs.id_feat, *obs.x, has_color, *rgb))
    return b''.join(chunks)


def _read_landmark(reader: _Reader) -> Tuple[int, Landmark]:
    key, x, y, z, n_obs = reader.unpack('<Q3dQ')
    observations = {}
    for _ in range(n_obs):
        view_id, id_feat, u, v, has_color, r, g, b = reader.unpack('<QQ2dB3B')
        color = (r, g, b) if has_color else None
        observations[view_id] = Observation(x=[u, v], id_feat=id_feat, color=color)
    return key, Landmark(X=[x, y, z], observations=observations)


def _pack_section(name: str, entries: Dict[int, Any]) -> bytes:
    chunks = [struct.pack('<Q', len(entries))]
    for key, value in entries.items():
        if name == 'views':
            chunks.append(struct.pack(
                '<6Qd', key, value.id_view, value.id_intrinsic, value.id_pose,
                value.width, value.height, value.timestamp,
            ))
        elif name == 'intrinsics':
            params = value.get_params()
            chunks.append(struct.pack('<Q', key))
            chunks.append(_pack_string(value.TYPE_NAME))
            chunks.append(struct.pack(f'<3Q{len(params)}d', value.width, value.height, len(params), *params))
        elif name == 'extrinsics':
            chunks.append(struct.pack('<Q12d', key, *value.rotation.ravel(), *value.center))
        else:
            chunks.append(_pack_landmark(key, value))
    body = b''.join(chunks)
    return struct.pack('<Q', len(body)) + body


def _read_section(name: str, reader: _Reader) -> Dict[int, Any]:
    entries: Dict[int, Any] = {}
    for _ in range(reader.u64()):
        if name == 'views':
            key, id_view, id_intrinsic, id_pose, width, height, timestamp = reader.unpack('<6Qd')
            entries[key] = View(id_view, id_intrinsic, id_pose, width, height, timestamp)
        elif name == 'intrinsics':
            key = reader.u64()
            cls = intrinsic_class(reader.string())
            width, height, n_params = reader.unpack('<3Q')
            params = reader.f64s(n_params)
            intrinsic = cls(width, height)
            if not intrinsic.update_from_params(params):
                raise ValueError(
                    f"camera model '{cls.TYPE_NAME}' does not take {n_params} parameters"
                )
            entries[key] = intrinsic
        elif name == 'extrinsics':
            key = reader.u64()
            values = reader.f64s(12)
            rotation = np.array(values[:9]).reshape(3, 3)
            entries[key] = Pose(rotation, values[9:], orthonormalize=True)
        else:
            key, landmark = _read_landmark(reader)
            entries[key] = landmark
    return entries


def to_bytes(veta: Veta, parts: VetaParts = VetaParts.ALL) -> bytes:
    """Binary encoding of a scene; unselected sections are written empty."""
    parts = VetaParts(parts)
    chunks = [_pack_string(SFM_DATA_VERSION)]
    for name, flag, attribute in SECTIONS:
        entries = getattr(veta, attribute) if parts.has(flag) else {}
        chunks.append(_pack_section(name, entries))
    return b''.join(chunks)


def from_bytes(data: bytes, parts: VetaParts = VetaParts.ALL) -> Veta:
    """
    Decode the selected sections of a binary buffer into a new scene.

    Unselected sections are skipped using their length prefix.

    Raises:
        struct.error: On truncated data
        ValueError: On unknown camera models or parameter counts
    """
    parts = VetaParts(parts)
    reader = _Reader(data)
    version = reader.string()
    if version != SFM_DATA_VERSION:
        logger.debug(f"Reading binary version {version}, current is {SFM_DATA_VERSION}")

    veta = Veta()
    for name, flag, attribute in SECTIONS:
        length = reader.u64()
        end = reader.offset + length
        if end > len(data):
            raise struct.error(f"Section '{name}' of {length} bytes is truncated")
        if parts.has(flag):
            setattr(veta, attribute, _read_section(name, _Reader(data[:end], reader.offset)))
        reader.offset = end
    return veta


# ----------------------------------------------------------------------
# Files
# ----------------------------------------------------------------------

def _extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip('.')


def save(veta: Veta, filename: str, parts: VetaParts = VetaParts.ALL) -> bool:
    """
    Save a scene to a file; the format is chosen from the extension.

    Args:
        veta: Scene to save
        filename: Output path (.json, .yaml, .yml or .bin)
        parts: Sections to write, others are written empty

    Returns:
        True on success, False on unknown format or write failure
    """
    ext = _extension(filename)
    try:
        if ext == 'json':
            with open(filename, 'w') as f:
                json.dump(to_document(veta, parts), f, indent=2)
        elif ext in ('yaml', 'yml'):
            with open(filename, 'w') as f:
                yaml.safe_dump(to_document(veta, parts), f, default_flow_style=False, sort_keys=False)
        elif ext in BINARY_FORMATS:
            with open(filename, 'wb') as f:
                f.write(to_bytes(veta, parts))
        else:
            logger.error(f"Unknown scene export format: {filename}")
            return False
    except (OSError, ValueError, struct.error, yaml.YAMLError) as e:
        logger.error(f"Failed to save scene to {filename}: {e}")
        return False

    logger.info(f"Saved {veta!r} to {filename}")
    return True


def load(
    veta: Veta,
    filename: str,
    parts: VetaParts = VetaParts.ALL,
    check_ids: bool = True,
) -> bool:
    """
    Load the selected sections of a scene file into `veta`.

    Sections are assigned only once the whole file decoded successfully.
    When views are loaded together with intrinsics or extrinsics, the
    result of valid_ids() is returned unless `check_ids` is False.

    Args:
        veta: Scene to fill
        filename: Input path (.json, .yaml, .yml or .bin)
        parts: Sections to read
        check_ids: Run valid_ids() on the loaded sections

    Returns:
        True on success, False on read failure or orphaned ids
    """
    parts = VetaParts(parts)
    ext = _extension(filename)
    try:
        if ext == 'json':
            with open(filename, 'r') as f:
                loaded = from_document(json.load(f), parts)
        elif ext in ('yaml', 'yml'):
            with open(filename, 'r') as f:
                loaded = from_document(yaml.safe_load(f), parts)
        elif ext in BINARY_FORMATS:
            with open(filename, 'rb') as f:
                loaded = from_bytes(f.read(), parts)
        else:
            logger.error(f"Unknown scene input format: {filename}")
            return False
    except (OSError, ValueError, KeyError, TypeError, struct.error, yaml.YAMLError) as e:
        logger.error(f"Failed to load scene from {filename}: {e}")
        return False

    for _, flag, attribute in SECTIONS:
        if parts.has(flag):
            setattr(veta, attribute, getattr(loaded, attribute))
    logger.info(f"Loaded {loaded!r} from {filename}")

    if check_ids and parts.has(VetaParts.VIEWS) and (
        parts.has(VetaParts.INTRINSICS) or parts.has(VetaParts.EXTRINSICS)
    ):
        return bool(valid_ids(veta, parts))
    return True
