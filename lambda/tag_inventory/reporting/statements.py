"""SQL statements for the report pipeline."""

TAG_INVENTORY_TABLE = "tag-inventory"
LATEST_VIEW = "tag-inventory-view-latest"
TOP_TEN_VIEW = "tag-inventory-view-latest-top-ten"
TAGGED_VS_UNTAGGED_VIEW = "tag-inventory-view-latest-tagged-vs-untagged"
CSV_RESULT_TABLE = "tag-inventory-latest-csv"

CSV_HEADER = ("date", "tagname", "tagvalue", "owningaccountid", "region", "service", "resourcetype", "arn")


class ReportStatements:
    """Builds the statement text for each pipeline step.

    ``source_table`` is the crawled JSON table, one row per
    (tagname, tagvalue) with a ``resources`` array, partitioned by ``d``.
    """

    def __init__(self, database: str, source_table: str, athena_bucket: str, report_bucket: str):
        self.database = database
        self.source_table = source_table
        self.athena_bucket = athena_bucket
        self.report_bucket = report_bucket

    def _table(self, name: str) -> str:
        return f'"{self.database}"."{name}"'

    def drop_csv_table(self) -> str:
        return f"DROP TABLE IF EXISTS `{self.database}.{CSV_RESULT_TABLE}`;"

    def load_partitions(self) -> str:
        return f"MSCK REPAIR TABLE `{self.database}.{self.source_table}`;"

    def create_external_table(self) -> str:
        return f"""CREATE TABLE IF NOT EXISTS {self._table(TAG_INVENTORY_TABLE)}
WITH (
    table_type = 'HIVE',
    format = 'PARQUET',
    parquet_compression = 'SNAPPY',
    external_location = 's3://{self.athena_bucket}/tables/{TAG_INVENTORY_TABLE}/',
    partitioned_by = ARRAY['d']
)
AS
SELECT
    tagname,
    tagvalue,
    r.owningAccountId,
    r.region,
    r.service,
    r.resourceType,
    r.arn,
    d
FROM {self._table(self.source_table)}, UNNEST("resources") t ("r")
WITH NO DATA"""

    def update_external_table(self) -> str:
        return f"""INSERT INTO {self._table(TAG_INVENTORY_TABLE)}
SELECT
    tagname,
    tagvalue,
    r.owningAccountId AS owningAccountId,
    r.region AS region,
    r.service AS service,
    r.resourceType AS resourceType,
    r.arn AS arn,
    d
FROM {self._table(self.source_table)}, UNNEST("resources") t ("r")"""

    def create_latest_view(self) -> str:
        return f"""CREATE OR REPLACE VIEW {self._table(LATEST_VIEW)} AS
SELECT d, tagname, tagvalue, owningAccountId, region, service, resourceType, arn
FROM {self._table(TAG_INVENTORY_TABLE)}
WHERE d = (SELECT max(d) FROM {self._table(TAG_INVENTORY_TABLE)})
ORDER BY d DESC, tagname DESC, tagvalue DESC"""

    def create_top_ten_view(self) -> str:
        return f"""CREATE OR REPLACE VIEW {self._table(TOP_TEN_VIEW)} AS
SELECT tagname, tagvalue, count(DISTINCT arn) AS resource_count
FROM {self._table(LATEST_VIEW)}
GROUP BY tagname, tagvalue
ORDER BY resource_count DESC, tagname DESC, tagvalue DESC
LIMIT 10"""

    def create_tagged_vs_untagged_view(self) -> str:
        return f"""CREATE OR REPLACE VIEW {self._table(TAGGED_VS_UNTAGGED_VIEW)} AS
SELECT kv1['tagged'] AS tagged, kv1['untagged'] AS untagged
FROM (
    SELECT map_agg(k, v) kv1
    FROM (
        SELECT 'untagged' AS k, count(DISTINCT arn) v
        FROM {self._table(LATEST_VIEW)}
        WHERE tagname = 'NoTag'
        UNION ALL
        SELECT 'tagged' AS k, count(DISTINCT arn) v
        FROM {self._table(LATEST_VIEW)}
        WHERE tagname != 'NoTag'
    )
)"""

    def max_date(self) -> str:
        return f"SELECT max(d) FROM {self._table(self.source_table)};"

    def create_csv_table(self, date_string: str) -> str:
        # The header is a data row; 'date' sorts ahead of every ISO date under DESC
        header = ", ".join(f"'{column}' AS {column if column != 'date' else 'd'}" for column in CSV_HEADER)
        columns = "d, tagname, tagvalue, owningaccountid, region, service, resourcetype, arn"
        return f"""CREATE TABLE {self._table(CSV_RESULT_TABLE)}
WITH (
    format = 'TEXTFILE',
    field_delimiter = ',',
    external_location = 's3://{self.report_bucket}/{self.csv_location(date_string)}',
    bucketed_by = ARRAY['d'],
    bucket_count = 1
)
AS (
    SELECT * FROM (
        SELECT {header}
        UNION ALL
        SELECT {columns} FROM {self._table(LATEST_VIEW)}
    )
) ORDER BY d DESC, tagname ASC"""

    @staticmethod
    def csv_location(date_string: str) -> str:
        return f"{date_string}/"

    @staticmethod
    def report_key(date_string: str) -> str:
        return f"report-{date_string}.csv.gz"
