"""Jira and Tempo authentication with requests sessions."""

import json
import urllib3
from typing import Optional, Dict, Any
import requests
from requests.auth import HTTPBasicAuth
from rich.console import Console
from rich.panel import Panel

from .settings import TrackerConfig

console = Console()

DEFAULT_TIMEOUT = 30


def extract_jira_error_payload(response: requests.Response) -> Dict[str, Any]:
    """Extract error payload from a Jira or Tempo REST API response.

    Jira returns {"errorMessages": [...], "errors": {field: message}};
    Tempo returns {"errors": [{"message": ...}]}.

    Args:
        response: requests.Response object with error status

    Returns:
        Dictionary with raw, errorMessages, errors, formatted and json_pretty keys
    """
    result = {
        'raw': None,
        'errorMessages': [],
        'errors': {},
        'formatted': '',
        'json_pretty': ''
    }

    try:
        error_data = response.json()
        result['raw'] = error_data
        result['errorMessages'] = list(error_data.get('errorMessages', []))
        errors = error_data.get('errors', {})
        if isinstance(errors, list):
            # Tempo style
            result['errorMessages'].extend(e.get('message', str(e)) for e in errors if e)
        else:
            result['errors'] = errors or {}

        formatted_parts = []

        if result['errorMessages']:
            formatted_parts.append("Error Messages:")
            for msg in result['errorMessages']:
                formatted_parts.append(f"  • {msg}")

        if result['errors']:
            if formatted_parts:
                formatted_parts.append("")
            formatted_parts.append("Field Errors:")
            for field, error in result['errors'].items():
                formatted_parts.append(f"  • {field}: {error}")

        result['formatted'] = '\n'.join(formatted_parts) if formatted_parts else "No error details available"
        result['json_pretty'] = json.dumps(error_data, indent=2)

    except (ValueError, AttributeError):
        # Not a JSON object, use raw text
        text = response.text or ""
        result['raw'] = {'text': text}
        result['formatted'] = f"Raw response: {text[:500]}"
        result['json_pretty'] = text[:500]

    return result


def safe_parse_response(response: requests.Response) -> Any:
    """Parse a JSON response, tolerating HTML answers from proxies and login pages.

    Returns:
        Parsed JSON, or {'is_html': True, 'text': ...} when the body is not JSON
    """
    content_type = response.headers.get('Content-Type', '') if response.headers else ''
    if 'text/html' in content_type:
        return {'is_html': True, 'text': response.text}
    try:
        return response.json()
    except ValueError:
        return {'is_html': True, 'text': response.text}


def raise_for_tracker_error(response: requests.Response, url: str):
    """Raise HTTPError with the parsed error payload attached for non-2xx responses."""
    if response.ok:
        return
    error_payload = extract_jira_error_payload(response)
    http_error = requests.exceptions.HTTPError(
        f"{response.status_code} Error for url: {url}\n{error_payload['formatted']}",
        response=response
    )
    http_error.error_payload = error_payload
    raise http_error


class JiraAuth:
    """Jira authentication handler using requests library."""

    def __init__(self, tracker: TrackerConfig, timeout: float = DEFAULT_TIMEOUT):
        """Initialize Jira authentication.

        Args:
            tracker: Connection settings of the Jira instance
            timeout: Request timeout in seconds
        """
        self.tracker = tracker
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create requests session with authentication."""
        if self._session is None:
            if not self.tracker.is_configured:
                raise ValueError(
                    f"Missing required credentials for {self.tracker.name}. "
                    "Please set server URL, email and API token in .env file"
                )

            self._session = requests.Session()
            self._session.auth = HTTPBasicAuth(self.tracker.email, self.tracker.api_token)

            if not self.tracker.verify_ssl:
                self._session.verify = False
                urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

            self._session.headers.update({
                'Content-Type': 'application/json',
                'Accept': 'application/json'
            })

        return self._session

    def api_root(self, api_version: Optional[str] = None) -> str:
        """Base REST URL, e.g. https://x.atlassian.net/rest/api/3."""
        return f"{self.tracker.url}/rest/api/{api_version or self.tracker.api_version}"

    def _make_request(self, method: str, endpoint: str, api_version: Optional[str] = None, **kwargs) -> requests.Response:
        """Make HTTP request to the Jira REST API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API endpoint (e.g., '/myself', '/search/jql')
            api_version: Override of the configured REST API version
            **kwargs: Additional arguments to pass to requests

        Returns:
            requests.Response object

        Raises:
            requests.exceptions.HTTPError: If HTTP error occurs (4xx, 5xx)
        """
        url = f"{self.api_root(api_version)}{endpoint}"
        kwargs.setdefault('timeout', self.timeout)
        response = self.session.request(method, url, **kwargs)

        raise_for_tracker_error(response, url)
        return response

    def test_connection(self) -> bool:
        """Test connection with the /myself endpoint.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            user_info = self._make_request('GET', '/myself').json()
            console.print(Panel(
                f"[green]✓[/green] Connected to {self.tracker.name} successfully!\n\n"
                f"Server: {self.tracker.url}\n"
                f"Display Name: {user_info.get('displayName', user_info.get('name', 'N/A'))}\n"
                f"Email: {user_info.get('emailAddress', self.tracker.email)}\n"
                f"Account ID: {user_info.get('accountId', 'N/A')}",
                title=f"Connection Test ({self.tracker.name})",
                border_style="green"
            ))
            return True
        except requests.exceptions.RequestException as e:
            console.print(Panel(
                f"[red]✗[/red] Connection to {self.tracker.name} failed!\n\n{str(e)}",
                title=f"Connection Test ({self.tracker.name})",
                border_style="red"
            ))
            return False

    def close(self):
        """Close Jira session connection."""
        if self._session:
            self._session.close()
            self._session = None


class TempoAuth:
    """Tempo Cloud authentication handler (bearer token)."""

    def __init__(self, tracker: TrackerConfig, timeout: float = DEFAULT_TIMEOUT):
        self.tracker = tracker
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            if not self.tracker.uses_tempo:
                raise ValueError(f"Missing Tempo token for {self.tracker.name}")
            self._session = requests.Session()
            self._session.headers.update({
                'Authorization': f"Bearer {self.tracker.tempo_token.strip()}",
                'Content-Type': 'application/json',
                'Accept': 'application/json'
            })
        return self._session

    @property
    def base_url(self) -> str:
        return f"{self.tracker.tempo_api_url.rstrip('/')}/4"

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Make HTTP request to the Tempo REST API.

        Endpoints starting with http are used as-is (pagination links).
        """
        url = endpoint if endpoint.startswith('http') else f"{self.base_url}{endpoint}"
        kwargs.setdefault('timeout', self.timeout)
        response = self.session.request(method, url, **kwargs)

        raise_for_tracker_error(response, url)
        return response

    def test_connection(self) -> bool:
        """Test the Tempo token by listing work attributes."""
        try:
            self._make_request('GET', '/work-attributes')
            console.print(f"[green]✓[/green] Connected to Tempo ({self.base_url})")
            return True
        except requests.exceptions.RequestException as e:
            console.print(f"[red]✗ Tempo connection failed:[/red] {str(e)}")
            return False

    def close(self):
        if self._session:
            self._session.close()
            self._session = None
