"""Offline preparation of the location catalog from the raw asset folders.

Each ``img<N>`` folder under the assets directory holds a ``cords.txt`` with a
single line such as ``39.68010N, 75.75369W`` and one or more photos; the
matching cubemap faces live under ``<locations_dir>/img<N>/``.
"""

import logging
import os
import re
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

COORDS_FILENAME = 'cords.txt'
IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png')

_COORD_RE = re.compile(r'(\d+\.\d+)\s*([NS]),\s*(\d+\.\d+)\s*([EW])')
_FOLDER_RE = re.compile(r'^img(\d+)$')


def parse_coordinates(text: str) -> Optional[Tuple[float, float]]:
    """Parse ``"39.68010N, 75.75369W"`` into signed decimal degrees.

    South latitudes and west longitudes come back negative. Returns None
    (and logs) when the string does not match.
    """
    match = _COORD_RE.search(text or '')
    if not match:
        logger.error(f"[coords] invalid coordinate format: {text!r}")
        return None
    lat = float(match.group(1))
    if match.group(2) == 'S':
        lat = -lat
    lng = float(match.group(3))
    if match.group(4) == 'W':
        lng = -lng
    return (lat, lng)


def _folder_number(name: str) -> int:
    match = _FOLDER_RE.match(name)
    return int(match.group(1)) if match else -1


def generate_locations(assets_dir: str, locations_dir: str, url_prefix: str = '/locations') -> List[dict]:
    """Build catalog entries for every complete ``img<N>`` asset folder."""
    dirs = [
        name for name in os.listdir(assets_dir)
        if name.startswith('img') and os.path.isdir(os.path.join(assets_dir, name))
    ]
    dirs.sort(key=_folder_number)

    locations = []
    for name in dirs:
        dir_path = os.path.join(assets_dir, name)
        coords_file = os.path.join(dir_path, COORDS_FILENAME)
        if not os.path.exists(coords_file):
            logger.warning(f"[coords] no coordinates file for {name}, skipping")
            continue

        with open(coords_file, encoding='utf-8') as fh:
            raw = fh.read().strip()
        coordinates = parse_coordinates(raw)
        if coordinates is None:
            logger.warning(f"[coords] could not parse coordinates for {name}: {raw!r}")
            continue

        if not os.path.isdir(os.path.join(locations_dir, name)):
            logger.warning(f"[coords] no cubemap directory for {name} in {locations_dir}, skipping")
            continue

        images = sorted(f for f in os.listdir(dir_path) if f.lower().endswith(IMAGE_EXTENSIONS))
        if images:
            display_name = os.path.splitext(images[0])[0]
        else:
            logger.warning(f"[coords] no image file in {name}, using folder name")
            display_name = name

        locations.append({
            'id': name,
            'image': f"{url_prefix.rstrip('/')}/{name}/",
            'coordinates': list(coordinates),
            'name': display_name,
        })
        logger.info(f"[coords] added location {name} - {display_name}")
    return locations
