import json
import logging
import os
from typing import Dict, List, Optional, Union

LOG = logging.getLogger(__name__)

LOCATIONS = ['top', 'bottom', 'left', 'right']


class IgnoreAreaManager:
    """Turns mask definitions into pixel rectangles excluded from the pixel diff.

    A mask may be a path to a ``.json`` file, a JSON string, a ``dict``, a ``list``
    of dicts or a short string like ``top:10;bottom:10``. Supported types are
    ``coordinates`` (``x``, ``y``, ``width``, ``height`` in pixels) and ``area``
    (``location`` plus ``percent`` of the image size).
    """

    def __init__(self, mask: Union[str, dict, list, None] = None):
        self.mask = mask
        self.ignore_areas = []

    def read_ignore_areas(self) -> List[Dict]:
        """Read ignore areas from the provided mask and return them as a list."""
        ignore_areas = None
        if isinstance(self.mask, str) and self.mask.endswith('.json') and os.path.isfile(self.mask):
            ignore_areas = self._load_ignore_area_file()
        elif self.mask:
            ignore_areas = self._parse_mask()

        if ignore_areas:
            if not isinstance(ignore_areas, list):
                ignore_areas = [ignore_areas]
            return ignore_areas
        return []

    def get_pixel_areas(self, width: int, height: int) -> List[Dict]:
        """Convert all ignore areas to pixel rectangles for an image of the given size."""
        self.ignore_areas = []
        for ignore_area in self.read_ignore_areas():
            self._process_ignore_area(ignore_area, width, height)
        return self.ignore_areas

    def _load_ignore_area_file(self):
        """Load ignore areas from the provided JSON file."""
        with open(self.mask, 'r') as f:
            return json.load(f)

    def _parse_mask(self):
        """Parse mask if provided as a string, dict, or list."""
        if isinstance(self.mask, (dict, list)):
            return self.mask
        try:
            return json.loads(self.mask)
        except json.JSONDecodeError:
            return self._parse_mask_string(self.mask)

    def _parse_mask_string(self, mask_str):
        """Parse a mask string that uses a custom format, e.g., 'top:10;bottom:10'."""
        ignore_areas = []
        for mask in mask_str.split(';'):
            if not mask:
                continue
            location, _, percent = mask.partition(':')
            if location in LOCATIONS and percent.isnumeric():
                ignore_areas.append({'type': 'area', 'location': location, 'percent': percent})
            else:
                LOG.warning(f'The mask {mask} is not valid. Expected <location>:<percent>.')
        return ignore_areas

    def _process_ignore_area(self, ignore_area: Dict, width: int, height: int):
        if not isinstance(ignore_area, dict):
            LOG.warning(f'The mask entry {ignore_area!r} is not valid. Expected an object with a type.')
            return
        ignore_area_type = ignore_area.get('type')
        if ignore_area_type in ('coordinates', 'coordinate'):
            self.ignore_areas.append({
                'x': int(ignore_area['x']),
                'y': int(ignore_area['y']),
                'width': int(ignore_area['width']),
                'height': int(ignore_area['height']),
            })
        elif ignore_area_type == 'area':
            area = self._area_to_rectangle(ignore_area, width, height)
            if area is not None:
                self.ignore_areas.append(area)
        else:
            LOG.warning(f'Unknown ignore area type: {ignore_area_type}')

    @staticmethod
    def _area_to_rectangle(ignore_area: Dict, width: int, height: int) -> Optional[Dict]:
        location = ignore_area.get('location')
        percent = int(ignore_area.get('percent', 10))
        if location == 'top':
            return {'x': 0, 'y': 0, 'width': width, 'height': int(height * percent / 100)}
        if location == 'bottom':
            area_height = int(height * percent / 100)
            return {'x': 0, 'y': height - area_height, 'width': width, 'height': area_height}
        if location == 'left':
            return {'x': 0, 'y': 0, 'width': int(width * percent / 100), 'height': height}
        if location == 'right':
            area_width = int(width * percent / 100)
            return {'x': width - area_width, 'y': 0, 'width': area_width, 'height': height}
        LOG.warning(f'Unknown ignore area location: {location}')
        return None
