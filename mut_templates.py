"""
MUT computer and mobile device CSV templates, and the append-only writer.

The column layout is dictated by the MUT import templates and must not be
reordered. Only the serial, purchasing and warranty columns are filled in.
"""
import csv
import logging
from pathlib import Path

from abm_errors import OutputError

logger = logging.getLogger(__name__)

COMPUTER_COLUMNS = (
    'Computer Serial', 'Display Name', 'Asset Tag', 'Barcode 1', 'Barcode 2',
    'Username', 'Real Name', 'Email Address', 'Position', 'Phone Number',
    'Department', 'Building', 'Room', 'PO Number', 'Vendor', 'Purchase Price',
    'PO Date', 'Warranty Expires', 'Is Leased', 'Lease Expires', 'AppleCare ID',
    'Site (ID or Name)',
)

MOBILE_COLUMNS = (
    'Mobile Device Serial', 'Display Name', 'Enforce Name', 'Asset Tag',
    'Username', 'Real Name', 'Email Address', 'Position', 'Phone Number',
    'Department', 'Building', 'Room', 'PO Number', 'Vendor', 'Purchase Price',
    'PO Date', 'Warranty Expires', 'Is Leased', 'Lease Expires', 'AppleCare ID',
    'Airplay Password (tvOS Only)', 'Site (ID or Name)',
)


class MutTemplate:
    def __init__(self, name, columns):
        self.name = name
        self.columns = tuple(columns)

    @property
    def serial_header(self):
        return self.columns[0]

    def build_row(self, serial, po_number='', vendor='', po_date='',
                  warranty_expires='', applecare_id=''):
        """
        Return a full-width row. Template placeholders are None and are
        written as bare empty fields; populated columns are always quoted,
        even when empty. Pass None for warranty_expires and applecare_id
        when coverage could not be fetched, to leave them bare as well.
        """
        row = [None] * len(self.columns)
        row[0] = serial
        row[self.columns.index('PO Number')] = po_number
        row[self.columns.index('Vendor')] = vendor
        # Purchase Price is not available from ABM and stays a placeholder
        row[self.columns.index('PO Date')] = po_date
        row[self.columns.index('Warranty Expires')] = warranty_expires
        row[self.columns.index('AppleCare ID')] = applecare_id
        return row


COMPUTER_TEMPLATE = MutTemplate('computer', COMPUTER_COLUMNS)
MOBILE_TEMPLATE = MutTemplate('mobile', MOBILE_COLUMNS)


class RecordWriter:
    """
    Appends rows to one output CSV. The file is opened per row so a row is on
    disk as soon as append() returns.
    """

    def __init__(self, path, template):
        self.path = Path(path)
        self.template = template
        self.rows_written = 0

    def write_header(self):
        """Create (or truncate) the file with the template's header row."""
        self._write(self.template.columns, mode='w', quoting=csv.QUOTE_MINIMAL)
        logger.info("Created: %s", self.path)

    def append(self, row):
        if len(row) != len(self.template.columns):
            raise ValueError(
                f"{self.template.name} row has {len(row)} columns, expected {len(self.template.columns)}"
            )
        self._write(row, mode='a', quoting=csv.QUOTE_NOTNULL)
        self.rows_written += 1

    def _write(self, row, mode, quoting):
        try:
            with open(self.path, mode, newline='') as f:
                writer = csv.writer(f, lineterminator='\n', quoting=quoting)
                writer.writerow(row)
        except OSError as e:
            raise OutputError(f"Failed writing {self.path}: {e}") from e
