import os


class Config:
    # Directory structure
    DATA_DIR = 'data'
    MERKLE_DIR = f'{DATA_DIR}/merkle'
    SOURCES_DIR = f'{DATA_DIR}/sources'
    CACHE_DIR = f'{DATA_DIR}/cache'

    # Source data files
    CLAIMER_LIST_FILE = f'{SOURCES_DIR}/claimer_list.json'

    # Cache data files
    INDEX_CACHE_FILE = f'{CACHE_DIR}/redpacket_index.json'

    # Allocation constants
    MIN_UNIT_SHARE = 1  # smallest payout per packet, in token base units
    MAX_PACKETS = 255
    DEFAULT_DURATION = 60 * 60 * 24  # 1 day

    # Entropy salt used when no REDPACKET_ENTROPY_SALT is set
    ENTROPY_SALT = '0x' + '00' * 32

    @classmethod
    def get_merkle_file(cls, name: str) -> str:
        """Returns the path to a merkle data file for a given distribution name"""
        return f'{cls.MERKLE_DIR}/merkle_data_{name}.json'

    @classmethod
    def get_min_unit_share(cls) -> int:
        value = int(os.getenv('REDPACKET_MIN_UNIT_SHARE', cls.MIN_UNIT_SHARE))
        if value < 1:
            raise ValueError(f'REDPACKET_MIN_UNIT_SHARE must be at least 1, got {value}')
        return value

    @classmethod
    def get_entropy_salt(cls) -> str:
        return os.getenv('REDPACKET_ENTROPY_SALT', cls.ENTROPY_SALT)
