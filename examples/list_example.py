from __future__ import annotations
from s3_explorer.core import get_http_session, list_keys
from s3_explorer.utils import filter_keys

if __name__ == "__main__":
    session = get_http_session()
    keys = list_keys(session, "https://my-bucket.s3.amazonaws.com", limit=100)
    for key in filter_keys(keys, ".sql"):
        print("Key:", key)
