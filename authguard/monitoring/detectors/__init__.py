"""
Suspicious activity detectors
"""
from typing import List

from .account_enumeration import AccountEnumerationDetector
from .base import ActivityDetector, PatternType, SuspiciousActivityPattern
from .brute_force import BruteForceDetector
from .credential_stuffing import CredentialStuffingDetector
from .password_spray import PasswordSprayDetector
from .rapid_registration import RapidRegistrationDetector
from .token_abuse import TokenAbuseDetector


def default_detectors() -> List[ActivityDetector]:
    return [
        BruteForceDetector(),
        CredentialStuffingDetector(),
        PasswordSprayDetector(),
        AccountEnumerationDetector(),
        RapidRegistrationDetector(),
        TokenAbuseDetector(),
    ]


__all__ = [
    'AccountEnumerationDetector',
    'ActivityDetector',
    'BruteForceDetector',
    'CredentialStuffingDetector',
    'PasswordSprayDetector',
    'PatternType',
    'RapidRegistrationDetector',
    'SuspiciousActivityPattern',
    'TokenAbuseDetector',
    'default_detectors',
]
