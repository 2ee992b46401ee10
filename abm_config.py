"""
Run configuration for the ABM warranty report.

Defaults come from the environment (a .env file is honoured), command-line
flags override them.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from abm_errors import ConfigError

# ----- Endpoints -----
TOKEN_URL = 'https://account.apple.com/auth/oauth2/token'
TOKEN_AUDIENCE = 'https://account.apple.com/auth/oauth2/v2/token'
SCOPES = ('business', 'school')

# ----- Defaults -----
DEFAULT_PRIVATE_KEY_PATH = '/path/to/private-key.pem'
DEFAULT_OUTPUT_DIR = '.'
DEFAULT_COMPUTER_FILENAME = 'ComputerTemplate.csv'
DEFAULT_MOBILE_FILENAME = 'MobileDeviceTemplate.csv'
# Pause between per-device coverage calls to stay under the API rate limit
DEFAULT_RATE_LIMIT_DELAY = 0.2
DEFAULT_TIMEOUT = 30


def ensure_csv_extension(filename):
    """Append .csv unless the name already ends with it."""
    if filename.endswith('.csv'):
        return filename
    return f'{filename}.csv'


class Settings:
    def __init__(self, private_key_path=DEFAULT_PRIVATE_KEY_PATH, client_id='', key_id='',
                 output_dir=DEFAULT_OUTPUT_DIR, computer_filename=DEFAULT_COMPUTER_FILENAME,
                 mobile_filename=DEFAULT_MOBILE_FILENAME, delay=DEFAULT_RATE_LIMIT_DELAY,
                 scope='business', timeout=DEFAULT_TIMEOUT):
        self.private_key_path = Path(private_key_path).expanduser()
        self.client_id = client_id
        self.key_id = key_id
        self.output_dir = Path(output_dir).expanduser()
        self.computer_filename = ensure_csv_extension(computer_filename)
        self.mobile_filename = ensure_csv_extension(mobile_filename)
        self.delay = float(delay)
        self.scope = scope
        self.timeout = float(timeout)

    @classmethod
    def from_env(cls, env_file=None, **overrides):
        """
        Build settings from ABM_* environment variables, then apply any
        non-None keyword overrides (typically parsed CLI flags).
        """
        load_dotenv(env_file)
        values = {
            'private_key_path': os.getenv('ABM_PRIVATE_KEY_PATH', DEFAULT_PRIVATE_KEY_PATH),
            'client_id': os.getenv('ABM_CLIENT_ID', ''),
            'key_id': os.getenv('ABM_KEY_ID', ''),
            'output_dir': os.getenv('ABM_OUTPUT_DIR', DEFAULT_OUTPUT_DIR),
            'computer_filename': os.getenv('ABM_COMPUTER_FILENAME', DEFAULT_COMPUTER_FILENAME),
            'mobile_filename': os.getenv('ABM_MOBILE_FILENAME', DEFAULT_MOBILE_FILENAME),
            'delay': os.getenv('ABM_RATE_LIMIT_DELAY', DEFAULT_RATE_LIMIT_DELAY),
            'scope': os.getenv('ABM_SCOPE', 'business'),
            'timeout': os.getenv('ABM_TIMEOUT', DEFAULT_TIMEOUT),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

    @property
    def api_base(self):
        return f'https://api-{self.scope}.apple.com/v1'

    @property
    def computer_csv(self):
        return self.output_dir / self.computer_filename

    @property
    def mobile_csv(self):
        return self.output_dir / self.mobile_filename

    def validate(self):
        """Raise ConfigError describing every problem found."""
        errors = []
        if not self.client_id:
            errors.append("client ID is required (--client-id or ABM_CLIENT_ID)")
        if not self.key_id:
            errors.append("key ID is required (--key-id or ABM_KEY_ID)")
        if self.scope not in SCOPES:
            errors.append(f"scope must be one of {', '.join(SCOPES)}, got {self.scope!r}")
        if self.delay < 0:
            errors.append("delay must not be negative")
        if not self.private_key_path.is_file():
            errors.append(f"Private key not found at: {self.private_key_path}")
        if not self.output_dir.is_dir():
            errors.append(f"Output directory does not exist: {self.output_dir}")
        if errors:
            raise ConfigError('; '.join(errors))
