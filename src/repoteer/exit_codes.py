"""Exit codes for the repoteer command."""

SUCCESS = 0  # Every repository completed without a hard error
GENERAL_ERROR = 1  # At least one repository hit a hard error
USAGE_ERROR = 2  # Wrong arguments or unknown sub-command
CONFIG_ERROR = 66  # Manifest missing or malformed
INTERRUPTED = 130  # Stopped by SIGINT/SIGTERM before the batch finished
