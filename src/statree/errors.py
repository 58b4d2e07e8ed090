# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exception hierarchy for the statree index."""


class StatreeError(Exception):
    """Base class for all index errors."""

    pass


class ValidationError(StatreeError):
    """Raised when an insert or query is rejected before touching the tree.

    Covers incomplete records, inverted intervals and out-of-order inserts.
    The tree is guaranteed to be unchanged when this is raised.
    """

    pass


class UnknownSchemeError(ValidationError):
    """Raised when wire data names an algorithm with no registered codec."""

    pass


class StructuralInvariantViolation(StatreeError):
    """Raised when the frontier or root is inconsistent.

    This always indicates a bug in the tree and must not be caught and ignored.
    """

    pass


class IncompatibleSchemeError(StatreeError):
    """Raised by a scheme when asked to combine ciphertexts from different keys."""

    pass


class UnknownStreamError(StatreeError):
    """Raised when a stream id is not present in the registry."""

    pass
