import logging
import os
from datetime import datetime

DEFAULT_LOG_DIR = "./.script-logs"


LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(log_file, level=logging.INFO):
    """Send every log record of the run to the console and to `log_file`."""
    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in (logging.StreamHandler(), logging.FileHandler(log_file)):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root


def default_log_file(log_dir=None):
    """Build the default log file path, creating the log directory if needed."""
    log_dir = log_dir or os.environ.get("SCRIPT_LOG_DIR", DEFAULT_LOG_DIR)
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)
    return os.path.join(log_dir, f"script_run_{datetime.now().strftime('%Y_%m_%d___%H%M%S')}.log")


def finish_log(log_file, success):
    """Rename the log file if the run had failures and print its location."""
    if not success and os.path.exists(log_file):
        error_log_file = os.path.splitext(log_file)[0] + '__errorred.log'
        os.rename(log_file, error_log_file)
        log_file = error_log_file

    print(f"THE LOG FILE LOCATION IS: {log_file}")
    return log_file
