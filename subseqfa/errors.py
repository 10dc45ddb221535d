# See the NOTICE file distributed with this work for additional information
# regarding copyright ownership.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exit codes and the fatal errors that map onto them."""

import logging

ERR_NONE = 0
ERR_USAGE = 1
ERR_FILE_NOT_FOUND = 2
ERR_IO = 3


class SubseqError(Exception):
    """Base class for errors that terminate a run."""

    exit_code = ERR_IO


class UsageError(SubseqError):
    """Malformed region or invalid command line arguments."""

    exit_code = ERR_USAGE


class SourceError(SubseqError):
    """An alignment file (or the output) could not be opened or queried."""

    exit_code = ERR_IO


class InputNotFoundError(SourceError):
    """An input alignment file does not exist."""

    exit_code = ERR_FILE_NOT_FOUND


def report_error(prog: str, error: Exception) -> int:
    """Log a fatal error prefixed by the program name.

    Args:
        prog: Name of the program, as shown to the user.
        error: The exception that stopped the run.

    Returns:
        The exit code for the error.
    """
    logger = logging.getLogger("subseqfa")
    logger.error("%s: %s", prog, error)
    return getattr(error, "exit_code", ERR_IO)
