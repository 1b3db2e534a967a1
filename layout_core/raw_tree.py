"""
Raw Tree Parser Module
Parses element-tree payloads produced by a browser extraction step into RawElement trees.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import InputError
from .models import AccessibilityInfo, RawElement, Rect, Viewport, STACKING_PROPERTIES

logger = logging.getLogger(__name__)


class RawTreeParser:
    """Parser for extracted element payloads (camelCase or snake_case keys)."""

    def __init__(self):
        self.key_aliases = {
            'tagName': 'tag_name',
            'tag': 'tag_name',
            'id': 'element_id',
            'elementId': 'element_id',
            'className': 'class_name',
            'class': 'class_name',
            'textContent': 'text',
            'position': 'rect',
            'bounds': 'rect',
            'isVisible': 'visible',
            'isScrollable': 'is_scrollable',
            'hasFixedDimensions': 'has_fixed_dimensions',
            'computedStyle': 'styles',
            'style': 'styles',
        }
        self.aria_aliases = {
            'ariaLabel': 'aria_label',
            'aria-label': 'aria_label',
            'ariaLabelledBy': 'aria_labelledby',
            'aria-labelledby': 'aria_labelledby',
            'ariaDescribedBy': 'aria_describedby',
            'aria-describedby': 'aria_describedby',
            'ariaHidden': 'aria_hidden',
            'aria-hidden': 'aria_hidden',
            'ariaExpanded': 'aria_expanded',
            'aria-expanded': 'aria_expanded',
            'ariaSelected': 'aria_selected',
            'aria-selected': 'aria_selected',
            'ariaChecked': 'aria_checked',
            'aria-checked': 'aria_checked',
            'ariaDisabled': 'aria_disabled',
            'aria-disabled': 'aria_disabled',
            'ariaValueNow': 'aria_value_now',
            'aria-valuenow': 'aria_value_now',
            'ariaValueMin': 'aria_value_min',
            'aria-valuemin': 'aria_value_min',
            'ariaValueMax': 'aria_value_max',
            'aria-valuemax': 'aria_value_max',
            'ariaValueText': 'aria_value_text',
            'aria-valuetext': 'aria_value_text',
            'tabIndex': 'tab_index',
            'tabindex': 'tab_index',
        }
        self.bool_fields = {
            'aria_hidden', 'aria_expanded', 'aria_selected', 'aria_checked', 'aria_disabled'
        }
        self.float_fields = {'aria_value_now', 'aria_value_min', 'aria_value_max'}

    def parse_capture(self, payload: Dict) -> Tuple[List[RawElement], Viewport]:
        """Parse a whole capture: {'viewport': {...}, 'elements': [...]}."""
        if not isinstance(payload, dict):
            raise InputError(f"Capture payload must be a mapping, got {type(payload).__name__}")
        logger.info("Starting capture parsing")
        viewport_data = payload.get('viewport')
        if not isinstance(viewport_data, dict):
            raise InputError("Capture payload has no viewport")
        viewport = Viewport.from_dict(viewport_data)

        elements = payload.get('elements')
        if elements is None and 'root' in payload:
            elements = [payload['root']] if payload['root'] else []
        if elements is None:
            elements = []
        if not isinstance(elements, list):
            raise InputError("Capture 'elements' must be a list")

        roots = [self.parse_element(element) for element in elements]
        logger.info(f"Capture parsing complete: {len(roots)} root element(s)")
        return roots, viewport

    def parse_element(self, data: Dict, depth: int = 0) -> RawElement:
        """Parse a single element payload and its children."""
        if not isinstance(data, dict):
            raise InputError(f"Element payload must be a mapping, got {type(data).__name__}")

        fields = {self.key_aliases.get(k, k): v for k, v in data.items()}
        tag_name = fields.get('tag_name')
        if not tag_name or not isinstance(tag_name, str):
            raise InputError(f"Element at depth {depth} has no tag name")

        rect = self._parse_rect(fields.get('rect'), tag_name)
        logger.debug(f"Parsing element: {tag_name} at depth {depth}")

        attributes = dict(fields.get('attributes') or {})
        styles = self._parse_styles(fields.get('styles'))
        if 'style' in attributes and isinstance(attributes['style'], str):
            for prop, value in self._parse_style_string(attributes['style']).items():
                styles.setdefault(prop, value)

        children = [self.parse_element(child, depth + 1) for child in fields.get('children') or []]

        opacity = fields.get('opacity', styles.get('opacity', 1.0))
        try:
            opacity = float(opacity)
        except (TypeError, ValueError) as e:
            raise InputError(f"Invalid opacity {opacity!r} on <{tag_name}>") from e

        return RawElement(
            tag_name=tag_name.lower(),
            rect=rect,
            element_id=fields.get('element_id') or None,
            class_name=self._parse_class_name(fields.get('class_name')),
            text=(fields.get('text') or '').strip() or None,
            visible=bool(fields.get('visible', True)),
            opacity=opacity,
            accessibility=self._parse_accessibility(fields.get('accessibility'), attributes),
            attributes=attributes,
            styles=styles,
            is_scrollable=bool(fields.get('is_scrollable', False)),
            has_fixed_dimensions=self._parse_fixed_dimensions(fields.get('has_fixed_dimensions')),
            children=children,
        )

    def _parse_rect(self, rect_data: Any, tag_name: str) -> Rect:
        if not isinstance(rect_data, dict):
            raise InputError(f"<{tag_name}> has no bounding rectangle")
        try:
            rect = Rect.from_dict(rect_data)
        except (TypeError, ValueError) as e:
            raise InputError(f"<{tag_name}> has a malformed bounding rectangle: {rect_data!r}") from e
        if rect.width < 0 or rect.height < 0:
            raise InputError(f"<{tag_name}> has a negative size: {rect_data!r}")
        return rect

    def _parse_class_name(self, value: Any) -> Optional[str]:
        # BeautifulSoup-style class lists and SVG animated strings both show up here
        if isinstance(value, list):
            value = ' '.join(str(v) for v in value)
        if not isinstance(value, str):
            return None
        value = ' '.join(value.split())
        return value or None

    def _parse_fixed_dimensions(self, value: Any) -> bool:
        if isinstance(value, dict):
            return bool(value.get('width')) and bool(value.get('height'))
        return bool(value)

    def _parse_styles(self, value: Union[str, Dict, None]) -> Dict[str, str]:
        if isinstance(value, str):
            parsed = self._parse_style_string(value)
        elif isinstance(value, dict):
            parsed = {self._kebab(k): str(v).strip() for k, v in value.items()}
        else:
            parsed = {}
        tracked = set(STACKING_PROPERTIES) | {'overflow'}
        return {k: v for k, v in parsed.items() if k in tracked}

    def _parse_style_string(self, style: str) -> Dict[str, str]:
        """Parse a CSS declaration string into a normalized dictionary."""
        result = {}
        for declaration in style.split(';'):
            if ':' in declaration:
                prop, value = declaration.split(':', 1)
                result[self._kebab(prop.strip())] = value.strip()
        return result

    def _kebab(self, name: str) -> str:
        out = []
        for ch in name:
            if ch.isupper():
                out.append('-')
                out.append(ch.lower())
            else:
                out.append(ch)
        return ''.join(out)

    def _parse_accessibility(self, data: Optional[Dict], attributes: Dict) -> AccessibilityInfo:
        values: Dict[str, Any] = {}
        sources = [attributes, data or {}]
        for source in sources:
            for key, value in source.items():
                name = self.aria_aliases.get(key, key if key == 'role' else None)
                if name is None or value is None or value == '':
                    continue
                values[name] = value

        info = AccessibilityInfo()
        for name, value in values.items():
            if name in self.bool_fields:
                value = value if isinstance(value, bool) else str(value).lower() == 'true'
            elif name in self.float_fields:
                try:
                    value = float(value)
                except (TypeError, ValueError) as e:
                    raise InputError(f"Invalid numeric aria value {name}={value!r}") from e
            elif name == 'tab_index':
                try:
                    value = int(value)
                except (TypeError, ValueError) as e:
                    raise InputError(f"Invalid tabindex {value!r}") from e
            else:
                value = str(value)
            setattr(info, name, value)
        return info


def parse_capture(payload: Dict) -> Tuple[List[RawElement], Viewport]:
    return RawTreeParser().parse_capture(payload)


def parse_raw_element(data: Dict) -> RawElement:
    return RawTreeParser().parse_element(data)
