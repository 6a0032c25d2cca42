'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import re
import os

import pytest

from memaware.lib import globals

log = globals.log


_SIZE_UNITS = {
    '': 1,
    'b': 1,
    'k': 1024,
    'm': 1024 ** 2,
    'g': 1024 ** 3,
    't': 1024 ** 4,
}

_TRUE_STRINGS = ('1', 'true', 'yes', 'on')


def fail_test(msg):
    """
    Record and report a test failure without immediately raising an exception.
    This will enable Pytest to continue running further steps in the test case
    without returning back on first failure.

    Parameters:
      msg (str): Human-readable failure description to log and store.

    Behavior:
      - Prints a standardized "FAIL - ..." message to stdout for quick visibility.
      - Logs the same message at error level via the global `log` logger.
      - Appends the raw message to `globals.error_list` for later aggregation/reporting.
    """
    print('FAIL - {}'.format(msg))
    log.error('FAIL - {}'.format(msg))
    # Checked at the end of every test case by update_test_result()
    globals.error_list.append(msg)



def update_test_result():
    # A non-empty error list at the end of a test case marks it as failed
    if len(globals.error_list) > 0:
        pytest.fail('Following FAILURES seen - {}'.format(globals.error_list))



def log_new_test_case(msg):
    banner = '========== NEW TEST CASE:      {}'.format(msg)
    print(banner)
    log.info(banner)



def print_test_output(log, result):
    print('#========================================================#')
    print('\t\t ** Test Output **')
    print('#========================================================#')
    print(f'exit code = {result.exit_code}')
    print(result.output)
    log.debug(result.output)



def parse_size(value):
    """
    Convert a container engine size string to a byte count.

    Parameters:
      value (str|int): e.g. "100m", "1G", "1500M", "4096" or an int.

    Returns:
      int: number of bytes, using binary units (1k = 1024).

    Raises:
      ValueError: for an empty string, a negative number or an unknown unit.
    """
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f'Size cannot be negative: {value}')
        return value
    match = re.fullmatch(r'\s*(\d+)\s*([bkmgt]?)b?\s*', str(value), re.I)
    if not match:
        raise ValueError(f'Invalid size string: {value!r}')
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit.lower()]



def env_flag(name, default=False):
    """Read a boolean switch from the environment."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in _TRUE_STRINGS



def output_excerpt(text, max_chars=2000):
    # Keep the tail, that is where runtimes print their failure traces
    if len(text) <= max_chars:
        return text
    return '... [{} chars omitted] ...\n{}'.format(len(text) - max_chars, text[-max_chars:])
