"""lockstake Core: 시간 잠금 스테이킹 원장"""
__version__ = "0.1.0"
