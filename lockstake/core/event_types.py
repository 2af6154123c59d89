"""이벤트 유형 상수

원장 감사/인덱싱 소비자가 구독하는 이벤트 이름.
"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # position lifecycle
    POSITION_OPENED = "position_opened"
    STAKE_INCREASED = "stake_increased"
    LOCK_EXTENDED = "lock_extended"
    POSITION_CLOSED = "position_closed"
    POSITION_MIGRATED = "position_migrated"

    # rewards
    REWARDS_CLAIMED = "rewards_claimed"
    REWARDS_COMPOUNDED = "rewards_compounded"

    # treasury
    FUNDING_ADDED = "funding_added"
    FUNDING_RECOVERED = "funding_recovered"
    NEXT_SUCCESSOR_SET = "next_successor_set"

    ALL = (
        POSITION_OPENED,
        STAKE_INCREASED,
        LOCK_EXTENDED,
        POSITION_CLOSED,
        POSITION_MIGRATED,
        REWARDS_CLAIMED,
        REWARDS_COMPOUNDED,
        FUNDING_ADDED,
        FUNDING_RECOVERED,
        NEXT_SUCCESSOR_SET,
    )
