"""
依存注入モジュール

FastAPIの依存注入機能を使用して、認証・DB接続などの共通処理を提供する。
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from supabase import Client, create_client

from app.core.config import settings
from app.core.security import (
    TokenValidationError,
    extract_token_from_header,
    verify_token,
)
from app.schemas.common import User


def get_supabase_client() -> Client:
    """
    Supabaseクライアントを取得する（匿名キー使用）

    RLS（Row Level Security）が適用される。

    Returns:
        Client: Supabaseクライアントインスタンス
    """
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY
    )


def get_supabase_admin() -> Client:
    """
    Supabase管理者クライアントを取得する（サービスロールキー使用）

    ⚠️ 注意: RLSをバイパスするため、認証済みユーザーのリクエストでのみ使用すること。

    Returns:
        Client: Supabase管理者クライアントインスタンス
    """
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer token"),
    supabase: Client = Depends(get_supabase_client),
) -> User:
    """
    現在のログインユーザーを取得する

    Raises:
        HTTPException(401): トークンが無効または期限切れの場合
    """
    try:
        token = extract_token_from_header(authorization)
        return User(**verify_token(supabase, token))

    except TokenValidationError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
