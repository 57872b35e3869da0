"""
Safe JSON parsing for activity bodies received from remote peers
"""
import json
from typing import Any, Dict
from flask import current_app


class SafeJSONParser:
    """
    JSON parser with built-in protection against:
    - Deeply nested objects (stack overflow)
    - Large payloads (memory exhaustion)
    - Key explosion attacks
    """

    DEFAULT_MAX_SIZE = 1_000_000  # 1MB
    DEFAULT_MAX_DEPTH = 50
    DEFAULT_MAX_KEYS = 1000
    DEFAULT_MAX_ARRAY_LENGTH = 10000

    SUSPICIOUS_KEYS = ('__proto__', 'constructor', 'prototype')

    def __init__(self):
        self.max_size = current_app.config.get('MAX_JSON_SIZE', self.DEFAULT_MAX_SIZE)
        self.max_depth = current_app.config.get('MAX_JSON_DEPTH', self.DEFAULT_MAX_DEPTH)
        self.max_keys = current_app.config.get('MAX_JSON_KEYS', self.DEFAULT_MAX_KEYS)
        self.max_array_length = current_app.config.get('MAX_JSON_ARRAY_LENGTH', self.DEFAULT_MAX_ARRAY_LENGTH)
        self._reset_counters()

    def _reset_counters(self):
        self.total_keys = 0
        self.total_array_items = 0

    def parse(self, data) -> Dict[str, Any]:
        """
        Parse an activity body with enforced limits

        Args:
            data: Raw JSON bytes or text

        Returns:
            The parsed JSON object

        Raises:
            ValueError: If the body exceeds a limit, is malformed or is not a JSON object
        """
        if isinstance(data, str):
            data = data.encode('utf-8')

        if not data:
            raise ValueError("Empty JSON data")

        if len(data) > self.max_size:
            raise ValueError(f"JSON too large: {len(data)} bytes exceeds maximum of {self.max_size}")

        # Cheap structural pre-scan, json.loads builds inner objects before outer ones
        self._check_depth(data)

        self._reset_counters()
        try:
            result = json.loads(
                data,
                object_pairs_hook=self._object_pairs_hook,
                parse_float=self._safe_float_parser,
                parse_constant=self._reject_constant
            )
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}")
        except RecursionError:
            raise ValueError(f"JSON nested too deeply (max depth: {self.max_depth})")
        finally:
            self._reset_counters()

        if not isinstance(result, dict):
            raise ValueError("JSON body must be an object")
        return result

    def _check_depth(self, data: bytes):
        depth = 0
        in_string = False
        escaped = False
        for byte in data:
            if in_string:
                if escaped:
                    escaped = False
                elif byte == 0x5c:  # backslash
                    escaped = True
                elif byte == 0x22:  # quote
                    in_string = False
                continue
            if byte == 0x22:
                in_string = True
            elif byte in (0x7b, 0x5b):  # { [
                depth += 1
                if depth > self.max_depth:
                    raise ValueError(f"JSON too deeply nested: depth {depth} exceeds maximum of {self.max_depth}")
            elif byte in (0x7d, 0x5d):  # } ]
                depth -= 1

    def _object_pairs_hook(self, pairs):
        obj = dict(pairs)

        self.total_keys += len(obj)
        if self.total_keys > self.max_keys:
            raise ValueError(f"Too many total keys: {self.total_keys} exceeds maximum of {self.max_keys}")

        for key, value in obj.items():
            if key in self.SUSPICIOUS_KEYS or len(key) > 1000:
                raise ValueError("JSON contains suspicious key patterns")
            if isinstance(value, list):
                self._validate_array(value)

        return obj

    def _validate_array(self, arr: list):
        if len(arr) > self.max_array_length:
            raise ValueError(f"Array too large: {len(arr)} items exceeds maximum of {self.max_array_length}")

        self.total_array_items += len(arr)
        if self.total_array_items > self.max_array_length * 10:  # Total across all arrays
            raise ValueError(f"Too many total array items: {self.total_array_items}")

    def _safe_float_parser(self, value: str) -> float:
        f = float(value)
        if not (-1e308 < f < 1e308):
            raise ValueError(f"Float value out of range: {value}")
        return f

    def _reject_constant(self, value: str):
        raise ValueError(f"Invalid JSON constant: {value}")
