"""Endpoint templates and client-wide defaults."""

VERSION = "1.0.0"

GET_USER_INFO_URL = "{protocol}://{data_url}/api/metaData/user"
GET_DEVICE_DETAILS_URL = "{protocol}://{data_url}/api/metaData/allDevices"
GET_DEVICE_METADATA_URL = "{protocol}://{data_url}/api/metaData/device/{device_id}"
GET_DP_URL = "{protocol}://{data_url}/api/apiLayer/getLimitedDataMultipleSensors/"
GET_FIRST_DP = "{protocol}://{data_url}/api/apiLayer/getMultipleSensorsDPAfter"
GET_LOAD_ENTITIES = "{protocol}://{data_url}/api/metaData/getAllClusterData"
INFLUXDB_URL = "{protocol}://{data_url}/api/apiLayer/getAllData"
GET_CURSOR_BATCHES_URL = "{protocol}://{data_url}/api/apiLayer/getCursorOfBatches"
CONSUMPTION_URL = "{protocol}://{data_url}/api/apiLayer/getStartEndDPV2"
TRIGGER_URL = "{protocol}://{data_url}/api/expression-schedular/user-trigger-with-title"
CLUSTER_AGGREGATION = "{protocol}://{data_url}/api/widget/clusterData"
GET_FILTERED_OPERATION_DATA = "{protocol}://{data_url}/api/consumption/getOperationDataWithTime"

# Page sizes
CURSOR_LIMIT = 1000
CURSOR_BATCHES_LIMIT = 25000
LOAD_ENTITIES_PAGE_SIZE = 5

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_USER_AGENT = f"io-connect/{VERSION}"

FILTER_OPERATORS = (">", "<", "<=", ">=", "!=", "==", "><", "<>")
AGGREGATE_OPERATIONS = ("min", "max", "last", "first")
CLUSTER_TYPES = ("normalCluster", "fixedValue", "productionEntity", "demandCluster")


def protocol_for(on_prem: bool) -> str:
    """On-premise deployments are served over plain http."""
    return "http" if on_prem else "https"


def build_url(template: str, *, on_prem: bool, data_url: str, **fields: str) -> str:
    """
    Fill an endpoint template.

    Args:
        template: One of the ``*_URL`` templates above
        on_prem: Selects http (True) or https (False)
        data_url: Host of the data service
        **fields: Extra placeholders such as ``device_id``

    Returns:
        Absolute URL
    """
    return template.format(protocol=protocol_for(on_prem), data_url=data_url, **fields)
