#!/usr/bin/env python3
"""
abm_warranty_report.py

Pulls device and AppleCare / warranty coverage data from Apple Business
Manager and writes two MUT-compatible CSV files:

  ComputerTemplate.csv     - Mac devices (productFamily = "Mac")
  MobileDeviceTemplate.csv - iPhone, iPad, Apple TV, iPod, Vision Pro, etc.

Incremental mode: if the output files already exist, the serials already
present are skipped and only newly added ABM devices are fetched and
appended. Each row is written as soon as its coverage has been fetched.

Populated fields (all others left blank): Serial, PO Number, Vendor,
Purchase Price (always blank), PO Date, Warranty Expires, AppleCare ID.

Warranty Expires is the active AppleCare plan's end date when one exists,
otherwise the Limited Warranty end date.

Usage:
  abm-warranty-report --key /path/to/key.pem --client-id BUSINESSAPI.xxxx \\
                      --key-id xxxx --outdir /path/to/output/folder
"""
import argparse
import logging
import sys
import time
from datetime import datetime

import requests

from abm_client import AbmClient, get_token
from abm_config import Settings
from abm_errors import AbmError, CoverageError
from apple_care_lookup import resolve_coverage
from generate_assertion import generate_client_assertion, load_private_key
from mut_templates import COMPUTER_TEMPLATE, MOBILE_TEMPLATE, RecordWriter
from sync_ledger import SyncLedger

logger = logging.getLogger(__name__)


class SyncTarget:
    """One output CSV: the serials it already holds and the writer appending to it."""

    def __init__(self, ledger, writer):
        self.ledger = ledger
        self.writer = writer

    @classmethod
    def open(cls, path, template):
        return cls(SyncLedger.load(path, template.serial_header), RecordWriter(path, template))

    @property
    def template(self):
        return self.writer.template

    def initialize(self):
        """Write the header only when the file did not exist when the ledger was loaded."""
        if self.ledger.existed:
            logger.info("Appending to: %s", self.writer.path)
        else:
            self.writer.write_header()


class SyncSummary:
    def __init__(self):
        self.total_devices = 0
        self.skipped = 0
        self.new_computers = 0
        self.new_mobile = 0
        self.coverage_errors = 0
        self.pages = 0

    @property
    def new_devices(self):
        return self.new_computers + self.new_mobile

    @property
    def up_to_date(self):
        return self.new_devices == 0


def log_page_progress(page, summary):
    logger.info(
        "Page %d complete - New: %d computers, %d mobile | Skipped: %d | Errors: %d",
        page, summary.new_computers, summary.new_mobile, summary.skipped, summary.coverage_errors,
    )


def sync_devices(devices, client, computer, mobile, delay=0.0, sleep=time.sleep, summary=None):
    """
    Write one row for every device not already in its target's ledger.

    devices is consumed lazily, one device at a time. client only needs a
    get_coverage(serial) method. Counts go into summary (a new SyncSummary
    when none is given), which is returned.
    """
    if summary is None:
        summary = SyncSummary()
    for device in devices:
        summary.total_devices += 1
        target = computer if device.is_mac else mobile

        if device.serial in target.ledger:
            summary.skipped += 1
            continue

        logger.info("New device: %s (%s)", device.serial, device.product_family)
        try:
            coverage = resolve_coverage(client.get_coverage(device.serial))
            warranty_expires, applecare_id = coverage.warranty_expires, coverage.applecare_id
        except CoverageError as e:
            # Coverage unavailable: keep serial and PO fields, leave warranty columns bare
            logger.warning("%s", e)
            summary.coverage_errors += 1
            warranty_expires, applecare_id = None, None

        target.writer.append(target.template.build_row(
            device.serial,
            po_number=device.order_number,
            vendor=device.purchase_source_type,
            po_date=device.po_date,
            warranty_expires=warranty_expires,
            applecare_id=applecare_id,
        ))
        target.ledger.add(device.serial)

        if device.is_mac:
            summary.new_computers += 1
        else:
            summary.new_mobile += 1

        if delay:
            sleep(delay)
    return summary


def run(settings, session=None, sleep=time.sleep):
    """Run one full incremental sync. Raises AbmError on any fatal problem."""
    settings.validate()

    computer = SyncTarget.open(settings.computer_csv, COMPUTER_TEMPLATE)
    mobile = SyncTarget.open(settings.mobile_csv, MOBILE_TEMPLATE)

    logger.info("Generating JWT client assertion...")
    private_key = load_private_key(settings.private_key_path)
    assertion = generate_client_assertion(private_key, settings.client_id, settings.key_id)

    session = session or requests.Session()
    logger.info("Requesting bearer token...")
    token = get_token(assertion, settings.client_id, scope=settings.scope,
                      session=session, timeout=settings.timeout)
    logger.info("Bearer token obtained (valid ~1 hour)")

    computer.initialize()
    mobile.initialize()

    client = AbmClient(settings.api_base, token, session=session, timeout=settings.timeout)
    logger.info("Fetching devices from ABM...")
    summary = SyncSummary()
    devices = client.iter_devices(on_page_done=lambda page: log_page_progress(page, summary))
    sync_devices(devices, client, computer, mobile, delay=settings.delay, sleep=sleep, summary=summary)
    summary.pages = client.pages_fetched
    return summary
    return summary


def print_summary(summary, settings):
    print()
    print("============================================")
    print(" ABM Warranty Report Complete")
    print("============================================")
    print(f" Total devices in ABM : {summary.total_devices}")
    print(f" Already in CSV       : {summary.skipped} (skipped)")
    print(f" New computers added  : {summary.new_computers} -> {settings.computer_filename}")
    print(f" New mobile added     : {summary.new_mobile} -> {settings.mobile_filename}")
    print(f" Coverage errors      : {summary.coverage_errors}")
    print("============================================")
    if summary.up_to_date:
        print()
        print(" No new devices were found in ABM.")
        print(" Both CSV files are already up to date.")
        print("============================================")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='abm-warranty-report',
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--key', dest='private_key_path', help="path to the ABM .pem private key")
    parser.add_argument('--client-id', dest='client_id', help="ABM API client ID (BUSINESSAPI.xxxx)")
    parser.add_argument('--key-id', dest='key_id', help="ABM API key ID")
    parser.add_argument('--outdir', dest='output_dir', help="existing directory for the CSV files")
    parser.add_argument('--computer-file', dest='computer_filename', help="computer CSV filename")
    parser.add_argument('--mobile-file', dest='mobile_filename', help="mobile device CSV filename")
    parser.add_argument('--delay', type=float, help="seconds to pause after each coverage call")
    parser.add_argument('--scope', choices=['business', 'school'], help="ABM or ASM API")
    parser.add_argument('--timeout', type=float, help="per-request timeout in seconds")
    parser.add_argument('--env-file', help="dotenv file with ABM_* defaults")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging")
    parser.add_argument('--log-file', help="also write the log to this file")
    return parser.parse_args(argv)


def configure_logging(verbose=False, log_file=None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    start_ts = datetime.now()
    print(f"Start Time: {start_ts.isoformat(sep=' ', timespec='seconds')}")

    try:
        settings = Settings.from_env(
            env_file=args.env_file,
            private_key_path=args.private_key_path,
            client_id=args.client_id,
            key_id=args.key_id,
            output_dir=args.output_dir,
            computer_filename=args.computer_filename,
            mobile_filename=args.mobile_filename,
            delay=args.delay,
            scope=args.scope,
            timeout=args.timeout,
        )
        summary = run(settings)
    except AbmError as e:
        logger.error("%s", e)
        return 1

    print_summary(summary, settings)

    end_ts = datetime.now()
    delta = end_ts - start_ts
    minutes = int(delta.total_seconds() // 60)
    seconds = int(delta.total_seconds() % 60)
    print(f"End Time: {end_ts.isoformat(sep=' ', timespec='seconds')}")
    print(f"Total Run Time: {minutes} minutes {seconds} seconds")
    return 0


if __name__ == '__main__':
    sys.exit(main())
