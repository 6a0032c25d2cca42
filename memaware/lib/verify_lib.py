'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import re
from dataclasses import dataclass

from memaware.lib import globals
from memaware.lib.errors import ExpectationFailure, MissingCaptureError
from memaware.lib.utils_lib import output_excerpt

log = globals.log



class OutputAnalyzer():
    """
    Chained checks over the output of one container run.

    Every should_* method returns the analyzer when the check holds and raises
    ExpectationFailure otherwise, so checks read as a sentence:

        OutputAnalyzer(result).should_have_exit_value(0) \
            .should_contain('Checking OperatingSystemMXBean') \
            .should_match(r'getFreePhysicalMemorySize: [1-9][0-9]*')

    Patterns are searched anywhere in the combined output, '^' and '$'
    anchor at line boundaries.
    """

    def __init__(self, result, excerpt_chars=2000):
        self.result = result
        self.output = result.output or (result.stdout + result.stderr)
        self.excerpt_chars = excerpt_chars

    @property
    def exit_value(self):
        return self.result.exit_code

    def _fail(self, expectation, detail):
        raise ExpectationFailure(expectation, output_excerpt(self.output, self.excerpt_chars), detail)

    def should_contain(self, text):
        if text not in self.output:
            self._fail(f"contains '{text}'", "Expected text not found in output")
        return self

    def should_not_contain(self, text):
        if text in self.output:
            self._fail(f"does not contain '{text}'", "Unexpected text found in output")
        return self

    def should_match(self, pattern):
        if not re.search(pattern, self.output, re.M):
            self._fail(f"matches /{pattern}/", "Pattern not found in output")
        return self

    def should_not_match(self, pattern):
        match = re.search(pattern, self.output, re.M)
        if match:
            self._fail(f"does not match /{pattern}/", f"Unexpected match '{match.group(0)}' in output")
        return self

    def should_have_exit_value(self, expected):
        if self.exit_value != expected:
            self._fail(f"exit value == {expected}", f"Exit value was {self.exit_value}")
        return self

    def should_have_nonzero_exit(self):
        if self.exit_value == 0:
            self._fail("exit value != 0", "Program exited successfully")
        return self

    def first_match(self, pattern, group=0):
        """
        Return the given group of the first match of pattern, or None.

        None is not an empty string: callers have to decide whether a missing
        value is a defect of the program under test or of the harness.
        """
        match = re.search(pattern, self.output, re.M)
        if not match:
            return None
        return match.group(group)

    def require_first_match(self, pattern, group=0, what=None):
        """first_match() for values the harness cannot continue without."""
        value = self.first_match(pattern, group)
        if value is None:
            what = what or f"/{pattern}/"
            log.error(f"No match for {what} in output:\n{output_excerpt(self.output, self.excerpt_chars)}")
            raise MissingCaptureError(f"no match for {what} in trace output", pattern=pattern)
        return value



@dataclass(frozen=True)
class ExactContains:
    text: str

    def check(self, analyzer):
        analyzer.should_contain(self.text)

    def describe(self):
        return f"contains '{self.text}'"


@dataclass(frozen=True)
class NotContains:
    text: str

    def check(self, analyzer):
        analyzer.should_not_contain(self.text)

    def describe(self):
        return f"does not contain '{self.text}'"


@dataclass(frozen=True)
class RegexMatches:
    pattern: str

    def check(self, analyzer):
        analyzer.should_match(self.pattern)

    def describe(self):
        return f"matches /{self.pattern}/"


@dataclass(frozen=True)
class RegexFirstMatch:
    pattern: str
    group: int = 0

    def check(self, analyzer):
        value = analyzer.first_match(self.pattern, self.group)
        if value is None:
            analyzer._fail(self.describe(), "Pattern not found in output")
        return value

    def describe(self):
        return f"captures group {self.group} of /{self.pattern}/"


@dataclass(frozen=True)
class ExitCodeEquals:
    code: int

    def check(self, analyzer):
        analyzer.should_have_exit_value(self.code)

    def describe(self):
        return f"exit value == {self.code}"


@dataclass(frozen=True)
class ExitCodeNonZero:

    def check(self, analyzer):
        analyzer.should_have_nonzero_exit()

    def describe(self):
        return "exit value != 0"



def check_with_fallback(analyzer, primary, fallback):
    """
    Check primary, and only if it fails as an expectation, check fallback.

    Used where the host may legitimately not support what primary asserts,
    e.g. swap accounting disabled in the kernel. Harness errors raised by
    the checks are never retried.

    Returns:
      None when primary held, otherwise a note describing the fallback used.

    Raises:
      ExpectationFailure: both primary and fallback failed.
    """
    try:
        primary.check(analyzer)
        return None
    except ExpectationFailure as primary_error:
        log.warning(f'Primary expectation failed ({primary.describe()}), trying fallback {fallback.describe()}')
        try:
            fallback.check(analyzer)
        except ExpectationFailure as fallback_error:
            raise ExpectationFailure(
                f"{primary.describe()} OR {fallback.describe()}",
                fallback_error.excerpt,
                "Neither the expectation nor its tolerated alternate held",
            ) from primary_error
    note = f'{primary.describe()} did not hold, accepted {fallback.describe()}'
    log.info(note)
    return note
