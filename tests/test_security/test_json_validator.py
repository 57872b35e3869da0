"""
Test cases for JSON validator security module
Tests protection against JSON-based attacks
"""
import pytest
import json
from unittest.mock import Mock, patch
from fedmrf.security.json_validator import SafeJSONParser


class TestSafeJSONParser:
    """Test JSON parsing security"""

    def setup_method(self):
        """Set up test fixtures"""
        # Mock Flask app config
        self.mock_app = Mock()
        self.mock_app.config = {
            'MAX_JSON_SIZE': 1000000,
            'MAX_JSON_DEPTH': 50,
            'MAX_JSON_KEYS': 1000,
            'MAX_JSON_ARRAY_LENGTH': 10000,
        }

    def parser(self):
        with patch('fedmrf.security.json_validator.current_app', self.mock_app):
            return SafeJSONParser()

    def test_normal_json_parsing(self):
        """Test parsing valid JSON"""
        valid_json = {
            "type": "Like",
            "actor": "https://example.com/users/alice",
            "object": "https://example.com/posts/123"
        }
        assert self.parser().parse(json.dumps(valid_json).encode()) == valid_json
        assert self.parser().parse(json.dumps(valid_json)) == valid_json

    def test_empty_json_rejected(self):
        with pytest.raises(ValueError, match="Empty JSON data"):
            self.parser().parse(b'')

    def test_oversized_json_rejected(self):
        parser = self.parser()
        parser.max_size = 100
        with pytest.raises(ValueError, match="JSON too large"):
            parser.parse(json.dumps({'content': 'x' * 200}).encode())

    def test_deeply_nested_json_rejected(self):
        parser = self.parser()
        parser.max_depth = 5
        nested = {}
        current = nested
        for _ in range(10):
            current['a'] = {}
            current = current['a']
        with pytest.raises(ValueError, match="too deeply nested"):
            parser.parse(json.dumps(nested).encode())

    def test_brackets_inside_strings_ignored(self):
        parser = self.parser()
        parser.max_depth = 2
        assert parser.parse(b'{"content": "[[[[{{{{ \\" ]]]"}')['content'] == '[[[[{{{{ " ]]]'

    def test_key_explosion_rejected(self):
        parser = self.parser()
        parser.max_keys = 10
        with pytest.raises(ValueError, match="Too many total keys"):
            parser.parse(json.dumps({f'key{i}': i for i in range(20)}).encode())

    def test_suspicious_keys_rejected(self):
        with pytest.raises(ValueError, match="suspicious key"):
            self.parser().parse(b'{"__proto__": {"admin": true}}')

    def test_large_array_rejected(self):
        parser = self.parser()
        parser.max_array_length = 5
        with pytest.raises(ValueError, match="Array too large"):
            parser.parse(json.dumps({'to': list(range(10))}).encode())

    def test_constants_rejected(self):
        with pytest.raises(ValueError, match="Invalid JSON constant"):
            self.parser().parse(b'{"value": NaN}')

    def test_invalid_json_rejected(self):
        with pytest.raises(ValueError, match="Invalid JSON"):
            self.parser().parse(b'{"type": "Like",}')

    def test_non_object_rejected(self):
        with pytest.raises(ValueError, match="must be an object"):
            self.parser().parse(b'[1, 2, 3]')
