"""Camera math for the cubemap panorama viewer.

The browser renders each location as a skybox built from six face images.
The viewer looks around by dragging: horizontal drag pans the longitude,
vertical drag tilts the latitude, which is clamped short of the poles so the
camera never flips. The look direction is the point on the unit sphere at
that longitude/latitude.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

CUBEMAP_FACES = ['posx.jpg', 'negx.jpg', 'posy.jpg', 'negy.jpg', 'posz.jpg', 'negz.jpg']
DRAG_SENSITIVITY = 0.3
MAX_PITCH = 89.0
INITIAL_YAW = math.pi
FIELD_OF_VIEW = 75


@dataclass
class CameraState:
    lon: float = 0.0
    lat: float = 0.0

    def drag(self, dx: float, dy: float) -> 'CameraState':
        """Apply a pointer drag of (dx, dy) pixels."""
        self.lon -= dx * DRAG_SENSITIVITY
        self.lat = max(-MAX_PITCH, min(MAX_PITCH, self.lat + dy * DRAG_SENSITIVITY))
        return self

    def look_vector(self) -> Tuple[float, float, float]:
        phi = math.radians(90 - self.lat)
        theta = math.radians(self.lon)
        return (
            math.sin(phi) * math.cos(theta),
            math.cos(phi),
            math.sin(phi) * math.sin(theta),
        )

    def to_dict(self) -> Dict:
        return {'lon': self.lon, 'lat': self.lat, 'look_vector': list(self.look_vector())}


def cubemap_urls(image_ref: str) -> List[str]:
    base = image_ref if image_ref.endswith('/') else image_ref + '/'
    return [f"{base}{face}" for face in CUBEMAP_FACES]


def panorama_payload(image_ref: str) -> Dict:
    return {
        'faces': cubemap_urls(image_ref),
        'fov': FIELD_OF_VIEW,
        'initial_yaw': INITIAL_YAW,
        'look_vector': list(CameraState().look_vector()),
        'drag_sensitivity': DRAG_SENSITIVITY,
        'max_pitch': MAX_PITCH,
    }
