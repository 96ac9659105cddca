#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Resolves and validates SPF records within DNS lookup limits"""

from __future__ import annotations

import os
from argparse import ArgumentParser

import logging

from spfguard import (
    __version__,
    check_domains,
    results_to_csv,
    results_to_json,
    output_to_file,
)
from spfguard._constants import (
    DEFAULT_DNS_RESOLVER,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_DNS_LOOKUPS,
    DEFAULT_MAX_VOID_DNS_LOOKUPS,
)

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


def _main():
    """Called when the module in executed"""
    arg_parser = ArgumentParser(description=__doc__)
    arg_parser.add_argument(
        "domain",
        nargs="+",
        help="one or more domains, or a single path to a "
        "file containing a list of domains",
    )
    arg_parser.add_argument(
        "-i", "--ip", required=True, help="the IP address of the SMTP client"
    )
    arg_parser.add_argument(
        "-r",
        "--resolver",
        default=DEFAULT_DNS_RESOLVER,
        help="a DNS-over-HTTPS URL or URL template containing {domain} and "
        "{type}, or a nameserver address "
        f"(default {DEFAULT_DNS_RESOLVER})",
    )
    arg_parser.add_argument(
        "--max-lookups",
        type=int,
        default=DEFAULT_MAX_DNS_LOOKUPS,
        help=f"maximum number of DNS lookups (default {DEFAULT_MAX_DNS_LOOKUPS})",
    )
    arg_parser.add_argument(
        "--max-void-lookups",
        type=int,
        default=DEFAULT_MAX_VOID_DNS_LOOKUPS,
        help="maximum number of DNS lookups without answers "
        f"(default {DEFAULT_MAX_VOID_DNS_LOOKUPS})",
    )
    arg_parser.add_argument(
        "-f",
        "--format",
        default="json",
        help="specify JSON or CSV screen output format",
    )
    arg_parser.add_argument(
        "-o",
        "--output",
        nargs="+",
        help="one or more file paths to output to "
        "(must end in .json or .csv) "
        "(silences screen output)",
    )
    arg_parser.add_argument(
        "-t",
        "--timeout",
        help="number of seconds to wait for an answer from DNS "
        f"(default {DEFAULT_HTTP_TIMEOUT})",
        type=float,
        default=DEFAULT_HTTP_TIMEOUT,
    )
    arg_parser.add_argument(
        "-w",
        "--wait",
        type=float,
        help="number of seconds to wait between checking domains (default 0.0)",
        default=0.0,
    )
    arg_parser.add_argument("-v", "--version", action="version", version=__version__)
    arg_parser.add_argument(
        "--debug", action="store_true", help="enable debugging output"
    )

    args = arg_parser.parse_args()

    logging_format = "%(asctime)s - %(levelname)s: %(message)s"
    logging.basicConfig(level=logging.WARNING, format=logging_format)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug output enabled")
    domains = args.domain
    if len(domains) == 1 and os.path.exists(domains[0]):
        with open(domains[0]) as domains_file:
            domains = domains_file.readlines()

    results = check_domains(
        domains,
        args.ip,
        resolver_target=args.resolver,
        max_dns_lookups=args.max_lookups,
        max_void_dns_lookups=args.max_void_lookups,
        timeout=args.timeout,
        wait=args.wait,
    )

    if args.output is None:
        if args.format.lower() == "json":
            results = results_to_json(results)
        elif args.format.lower() == "csv":
            results = results_to_csv(results)
        print(results)
    else:
        for path in args.output:
            if path.lower().endswith(".json"):
                output_to_file(path, results_to_json(results))
            elif path.lower().endswith(".csv"):
                output_to_file(path, results_to_csv(results))
            else:
                logging.error(f"Output path {path} must end in .json or .csv")


if __name__ == "__main__":
    _main()
