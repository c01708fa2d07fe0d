from __future__ import annotations
from tqdm import tqdm

from s3_explorer.core import get_http_session, list_keys
from s3_explorer.download import ProgressCounter, fetch_all

if __name__ == "__main__":
    bucket_url = "https://my-bucket.s3.amazonaws.com"
    session = get_http_session()
    keys = list_keys(session, bucket_url, limit=200)
    with tqdm(total=len(keys), desc="Download", unit="obj") as bar:
        counter = ProgressCounter(on_tick=bar.update)
        res = fetch_all(session, bucket_url, keys, concurrency=16, dst_root="loot", counter=counter)
    print("Downloaded:", len(res["downloaded"]), "Errors:", len(res["errors"]))
