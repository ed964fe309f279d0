"""
Column names used to store container statistics.

Every row starts with the default columns; metric columns follow.
"""

COL_TIMESTAMP = "time"
COL_MACHINE_NAME = "machine"
COL_CONTAINER_NAME = "container_name"
COL_CPU_CUMULATIVE_USAGE = "cpu_cumulative_usage"
# Memory usage
COL_MEMORY_USAGE = "memory_usage"
# Working set size
COL_MEMORY_WORKING_SET = "memory_working_set"
# Cumulative count of bytes received.
COL_RX_BYTES = "rx_bytes"
# Cumulative count of receive errors encountered.
COL_RX_ERRORS = "rx_errors"
# Cumulative count of bytes transmitted.
COL_TX_BYTES = "tx_bytes"
# Cumulative count of transmit errors encountered.
COL_TX_ERRORS = "tx_errors"
# Filesystem device.
COL_FS_DEVICE = "fs_device"
# Filesystem limit.
COL_FS_LIMIT = "fs_limit"
# Filesystem usage.
COL_FS_USAGE = "fs_usage"

DEFAULT_COLUMNS = (COL_TIMESTAMP, COL_MACHINE_NAME, COL_CONTAINER_NAME)
CORE_COLUMNS = (COL_CPU_CUMULATIVE_USAGE, COL_MEMORY_USAGE, COL_MEMORY_WORKING_SET)
NETWORK_COLUMNS = (COL_RX_BYTES, COL_RX_ERRORS, COL_TX_BYTES, COL_TX_ERRORS)
FILESYSTEM_COLUMNS = (COL_FS_DEVICE, COL_FS_LIMIT, COL_FS_USAGE)

# Columns stored as tags (indexed, string-valued) rather than fields
TAG_COLUMNS = (COL_MACHINE_NAME, COL_CONTAINER_NAME, COL_FS_DEVICE)
