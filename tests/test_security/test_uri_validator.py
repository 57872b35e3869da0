"""
Test cases for URI validation security
Tests protection against SSRF and other URI-based attacks
"""
import pytest
import ipaddress
import socket
from unittest.mock import Mock, patch
from fedmrf.security.uri_validator import URIValidator


class TestURIValidator:
    """Test URI validation security"""

    def setup_method(self):
        """Set up test fixtures"""
        self.mock_app = Mock()
        self.mock_app.config = {
            'URI_BLOCKED_HOSTS': ['internal.example'],
            'REQUIRE_HTTPS_ACTIVITYPUB': True,
        }

        with patch('fedmrf.security.uri_validator.current_app', self.mock_app):
            self.validator = URIValidator(resolve_dns=False)

    def test_valid_https_uri_accepted(self):
        valid_uris = [
            "https://example.com/users/alice",
            "https://mastodon.social/@user",
            "https://sub.domain.example.com:8443/path?query=1#fragment"
        ]
        for uri in valid_uris:
            assert self.validator.validate(uri) == uri

    def test_empty_uri_rejected(self):
        with pytest.raises(ValueError, match="Empty URI"):
            self.validator.validate("")
        with pytest.raises(ValueError, match="Empty URI"):
            self.validator.validate(None)

    def test_oversized_uri_rejected(self):
        with pytest.raises(ValueError, match="URI too long"):
            self.validator.validate("https://example.com/" + "x" * 3000)

    @pytest.mark.parametrize('uri', ["file:///etc/passwd", "ftp://example.com/file", "gopher://example.com/"])
    def test_dangerous_schemes_rejected(self, uri):
        with pytest.raises(ValueError, match="Disallowed URI scheme"):
            self.validator.validate(uri)

    def test_http_rejected_when_https_required(self):
        with pytest.raises(ValueError, match="must use HTTPS"):
            self.validator.validate("http://example.com/users/alice")

    def test_http_allowed_when_configured(self):
        self.mock_app.config['REQUIRE_HTTPS_ACTIVITYPUB'] = False
        with patch('fedmrf.security.uri_validator.current_app', self.mock_app):
            validator = URIValidator(resolve_dns=False)
        assert validator.validate("http://example.com/users/alice")

    @pytest.mark.parametrize('uri', [
        "https://127.0.0.1/admin",
        "https://10.0.0.1/",
        "https://192.168.1.1/",
        "https://169.254.169.254/latest/meta-data/",
        "https://[::1]/",
        "https://[fe80::1]/",
    ])
    def test_private_addresses_rejected(self, uri):
        with pytest.raises(ValueError):
            self.validator.validate(uri)

    def test_blocked_hosts(self):
        for uri in ("https://localhost/", "https://internal.example/x"):
            with pytest.raises(ValueError, match="Blocked hostname"):
                self.validator.validate(uri)

    def test_blocked_ports(self):
        with pytest.raises(ValueError, match="Blocked port"):
            self.validator.validate("https://example.com:6379/")

    @pytest.mark.parametrize('uri', ["https://example.com/%00", "https://example.com/%0d%0aSet-Cookie:x"])
    def test_suspicious_patterns(self, uri):
        with pytest.raises(ValueError, match="suspicious pattern"):
            self.validator.validate(uri)

    def test_invalid_hostname(self):
        with pytest.raises(ValueError, match="Invalid hostname"):
            self.validator.validate("https://exa$mple.com/")

    def test_dns_rebinding_to_private_address(self):
        with patch('fedmrf.security.uri_validator.current_app', self.mock_app):
            validator = URIValidator()
        addr_info = [(socket.AF_INET, socket.SOCK_STREAM, 6, '', ('10.1.2.3', 443))]
        with patch('fedmrf.security.uri_validator.socket.getaddrinfo', return_value=addr_info) as getaddrinfo:
            with pytest.raises(ValueError, match="resolves to private IP"):
                validator.validate("https://sneaky.example/")
            with pytest.raises(ValueError):
                validator.validate("https://sneaky.example/other")
        # resolved once, then cached
        assert getaddrinfo.call_count == 1

    def test_unresolvable_host_allowed(self):
        with patch('fedmrf.security.uri_validator.current_app', self.mock_app):
            validator = URIValidator()
        with patch('fedmrf.security.uri_validator.socket.getaddrinfo', side_effect=socket.gaierror('nope')):
            assert validator.validate("https://nowhere.example/")

    def test_private_range_table(self):
        assert self.validator._is_private_ip(ipaddress.ip_address('172.16.5.4'))
        assert not self.validator._is_private_ip(ipaddress.ip_address('8.8.8.8'))
