"""
Reconstructed 3D points and their 2D observations.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import logging

from .view import UNDEFINED_INDEX

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Observation:
    """2D measurement of a landmark in one view."""
    x: np.ndarray  # Pixel coordinates (u, v)
    id_feat: int = UNDEFINED_INDEX  # Feature id in the view
    color: Optional[Tuple[int, int, int]] = None  # RGB, if sampled

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=np.float64).reshape(2)
        if self.color is not None:
            self.color = tuple(int(v) for v in self.color)

    def to_dict(self) -> Dict[str, Any]:
        data = {'id_feat': self.id_feat, 'x': self.x.tolist()}
        if self.color is not None:
            data['color'] = list(self.color)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        return cls(x=data['x'], id_feat=int(data['id_feat']), color=data.get('color'))


@dataclass(eq=False)
class Landmark:
    """
    3D point with its observations, keyed by view id.

    Observations are not checked against the scene's views.
    """
    X: np.ndarray
    observations: Dict[int, Observation] = field(default_factory=dict)

    def __post_init__(self):
        self.X = np.asarray(self.X, dtype=np.float64).reshape(3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'X': self.X.tolist(),
            'observations': [
                {'key': view_id, 'value': obs.to_dict()}
                for view_id, obs in self.observations.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Landmark":
        observations = {
            int(entry['key']): Observation.from_dict(entry['value'])
            for entry in data.get('observations', [])
        }
        return cls(X=data['X'], observations=observations)
