"""
Configuration module for scene validation.

Handles loading and validation of configuration from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, List
import logging

from .intrinsics import IntrinsicBase
from .io import intrinsic_from_dict
from .scene import VetaParts

logger = logging.getLogger(__name__)

DEFAULT_PARTS = ['views', 'intrinsics', 'extrinsics', 'structure']


@dataclass
class CameraIntrinsics:
    """Camera intrinsic parameters."""
    model: str = 'pinhole'  # Persisted camera model name
    width: int = 0  # Image width in pixels
    height: int = 0  # Image height in pixels
    fx: float = 0.0  # Focal length in x (pixels)
    fy: float = 0.0  # Focal length in y (pixels)
    ppx: float = 0.0  # Principal point x (pixels)
    ppy: float = 0.0  # Principal point y (pixels)
    distortion: List[float] = field(default_factory=list)  # Model specific coefficients

    def build(self) -> IntrinsicBase:
        """
        Create the camera model.

        Raises:
            ValueError: If the model is unknown or the number of distortion
                coefficients does not match it
        """
        return intrinsic_from_dict({
            'polymorphic_name': self.model,
            'width': self.width,
            'height': self.height,
            'focal_length': [self.fx, self.fy],
            'principal_point': [self.ppx, self.ppy],
            'disto_param': list(self.distortion),
        })


@dataclass
class Config:
    """
    Main configuration class for scene validation.

    Attributes:
        scene: Scene file to load (json, yaml or bin)
        output: File the scene is saved to after validation
        parts: Section names to load, check and save
        check_orphans: Run the orphan pose / intrinsic check
        cameras: Camera models to add to the scene, keyed by intrinsic id
    """
    scene: Optional[str] = None
    output: Optional[str] = None
    parts: List[str] = field(default_factory=lambda: list(DEFAULT_PARTS))
    check_orphans: bool = True
    cameras: Dict[int, CameraIntrinsics] = field(default_factory=dict)

    def parts_flag(self) -> VetaParts:
        """
        Combine the configured section names into a VetaParts flag.

        Raises:
            ValueError: On an unknown section name
        """
        return parse_parts(self.parts)

    @classmethod
    def from_yaml(cls, config_path: str) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config object with loaded parameters

        Example YAML structure:
            scene: scene.json
            output: converted.bin
            parts: [views, intrinsics, extrinsics, structure]
            check_orphans: true
            cameras:
              1:
                model: pinhole_brown_t2
                width: 4000
                height: 3000
                fx: 3200.0
                fy: 3200.0
                ppx: 2000.0
                ppy: 1500.0
                distortion: [-0.1, 0.01, 0.0, 0.001, 0.0]
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        # Parse cameras (optional)
        cameras = {}
        for cam_id, cam_data in (data.get('cameras') or {}).items():
            cameras[int(cam_id)] = CameraIntrinsics(
                model=cam_data.get('model', 'pinhole'),
                width=int(cam_data.get('width', 0)),
                height=int(cam_data.get('height', 0)),
                fx=float(cam_data.get('fx', 0.0)),
                fy=float(cam_data.get('fy', cam_data.get('fx', 0.0))),
                ppx=float(cam_data.get('ppx', 0.0)),
                ppy=float(cam_data.get('ppy', 0.0)),
                distortion=[float(v) for v in cam_data.get('distortion', [])],
            )

        # Resolve paths relative to config file location
        config_dir = path.parent
        scene = data.get('scene')
        if scene:
            scene = str(config_dir / scene)
        output = data.get('output')
        if output:
            output = str(config_dir / output)

        config = cls(
            scene=scene,
            output=output,
            parts=list(data.get('parts', DEFAULT_PARTS)),
            check_orphans=bool(data.get('check_orphans', True)),
            cameras=cameras,
        )
        # Fail early on bad section names
        config.parts_flag()
        return config

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        data = {
            'scene': self.scene,
            'output': self.output,
            'parts': list(self.parts),
            'check_orphans': self.check_orphans,
            'cameras': {
                cam_id: {
                    'model': cam.model,
                    'width': cam.width,
                    'height': cam.height,
                    'fx': cam.fx,
                    'fy': cam.fy,
                    'ppx': cam.ppx,
                    'ppy': cam.ppy,
                    'distortion': list(cam.distortion),
                }
                for cam_id, cam in self.cameras.items()
            },
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")


def parse_parts(names: List[str]) -> VetaParts:
    """
    Combine section names ('views', 'extrinsics', ..., 'all') into a flag.

    Raises:
        ValueError: On an unknown section name
    """
    flag = VetaParts(0)
    for name in names:
        key = str(name).strip().upper()
        if key not in VetaParts.__members__:
            raise ValueError(
                f"Unknown scene part '{name}', expected one of "
                f"{[m.lower() for m in VetaParts.__members__]}"
            )
        flag |= VetaParts[key]
    return flag
