"""
ドメイン例外定義
"""
from typing import Optional


class DataFetchError(Exception):
    """
    データ取得エラー

    Supabase（PostgREST）への問い合わせが失敗した場合に発生する。
    集計処理はこの例外が発生した時点で実行しない。
    """

    def __init__(self, source: str, message: str, code: Optional[str] = None):
        self.source = source
        self.message = message
        self.code = code
        super().__init__(f"{source}: {message}")
