# -*- coding: utf-8 -*-
"""SPF evaluation errors"""

from __future__ import annotations

from typing import Literal, Optional

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""

PERMERROR = "permerror"
UNKNOWN = "unknown"

SPFErrorKind = Literal["permerror", "unknown"]


class SPFError(Exception):
    """Raised when an SPF record cannot be evaluated"""

    kind: SPFErrorKind = UNKNOWN

    def __init__(
        self,
        msg: str,
        kind: Optional[SPFErrorKind] = None,
        cause: Optional[BaseException] = None,
        data: Optional[dict] = None,
    ):
        """
        Args:
            msg (str): The error message
            kind (str): ``permerror`` or ``unknown``; defaults to the class kind
            cause (Exception): The underlying error, if any
            data (dict): A dictionary of data to include in the output
        """
        if kind is not None:
            self.kind = kind
        self.cause = cause
        self.data = data
        Exception.__init__(self, msg)

    @property
    def message(self) -> str:
        return str(self.args[0])


class SPFPermError(SPFError):
    """Raised when a permanent SPF error occurs"""

    kind: SPFErrorKind = PERMERROR


class SPFTooManyDNSLookups(SPFPermError):
    """Raised when an evaluation requires too many DNS lookups"""

    def __init__(self, *args, **kwargs):
        data = {"dns_lookups": kwargs["dns_lookups"]}
        SPFPermError.__init__(self, args[0], data=data)


class SPFTooManyVoidDNSLookups(SPFPermError):
    """Raised when an evaluation has too many void DNS lookups"""

    def __init__(self, *args, **kwargs):
        data = {"void_dns_lookups": kwargs["void_dns_lookups"]}
        SPFPermError.__init__(self, args[0], data=data)


class InvalidDomain(SPFPermError):
    """Raised when a domain name is not syntactically valid"""


class InvalidIPAddress(SPFPermError):
    """Raised when the client IP address is not syntactically valid"""


class SPFRecordNotFound(SPFPermError):
    """Raised when an SPF record could not be found"""


class MultipleSPFRTXTRecords(SPFPermError):
    """Raised when multiple TXT spf1 records are found"""


class SPFSyntaxError(SPFPermError):
    """Raised when an SPF syntax error is found"""


class SPFVoidDNSLookup(SPFError):
    """Raised when a DNS lookup returns no answers"""


class SPFDNSLookupFailed(SPFError):
    """Raised when a DNS lookup cannot be completed"""
