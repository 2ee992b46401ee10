"""
Resolve the warranty and AppleCare fields for a device from its
appleCareCoverage records.

A device can carry several overlapping coverages, e.g. an expired Limited
Warranty next to an active AppleCare+ plan. Precedence:

  Warranty Expires: end date of the first ACTIVE non-Limited-Warranty entry,
                    else the first Limited Warranty entry's end date.
  AppleCare ID:     agreement number of the first non-Limited-Warranty entry,
                    ACTIVE entries first.
"""
from dataclasses import dataclass

LIMITED_WARRANTY = 'Limited Warranty'
ACTIVE = 'ACTIVE'


def date_only(timestamp):
    """Trim the time portion of an ISO 8601 timestamp."""
    if not timestamp:
        return ''
    return timestamp.split('T', 1)[0]


@dataclass(frozen=True)
class CoverageEntry:
    description: str = ''
    status: str = ''
    end_date_time: str = ''
    agreement_number: str = ''

    @classmethod
    def from_api(cls, obj):
        # coverage may be missing attributes, and any attribute may be null
        attrs = (obj or {}).get('attributes') or {}
        return cls(
            description=attrs.get('description') or '',
            status=attrs.get('status') or '',
            end_date_time=attrs.get('endDateTime') or '',
            agreement_number=attrs.get('agreementNumber') or '',
        )

    @property
    def is_limited_warranty(self):
        return self.description == LIMITED_WARRANTY

    @property
    def is_active(self):
        return self.status == ACTIVE


@dataclass(frozen=True)
class CoverageSummary:
    warranty_expires: str = ''
    applecare_id: str = ''


def warranty_expires(entries):
    active_applecare = [e for e in entries if not e.is_limited_warranty and e.is_active]
    # An active plan without an end date falls through to the Limited Warranty
    if active_applecare and active_applecare[0].end_date_time:
        return date_only(active_applecare[0].end_date_time)

    limited = [e for e in entries if e.is_limited_warranty]
    if limited:
        return date_only(limited[0].end_date_time)
    return ''


def applecare_id(entries):
    applecare = [e for e in entries if not e.is_limited_warranty]
    # sorted() is stable, so server order is kept inside each group
    applecare = sorted(applecare, key=lambda e: not e.is_active)
    if not applecare:
        return ''
    return applecare[0].agreement_number


def resolve_coverage(entries):
    entries = list(entries)
    return CoverageSummary(
        warranty_expires=warranty_expires(entries),
        applecare_id=applecare_id(entries),
    )
