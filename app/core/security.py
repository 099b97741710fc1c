"""
セキュリティモジュール

Supabase Authが発行したアクセストークンを検証する。
"""
from typing import Any, Dict, Optional

from supabase import Client


class TokenValidationError(Exception):
    """
    トークン検証エラー

    アクセストークンの検証に失敗した場合に発生する例外。
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    "Bearer <token>" 形式のヘッダー値からトークン部分を抽出する

    Raises:
        TokenValidationError: ヘッダーがない、または形式が不正な場合
    """
    if not authorization:
        raise TokenValidationError(
            "Authentification requise : en-tête Authorization manquant."
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise TokenValidationError(
            "En-tête Authorization invalide : format attendu 'Bearer <token>'."
        )

    return parts[1]


def verify_token(supabase: Client, token: str) -> Dict[str, Any]:
    """
    トークンをSupabase Authで検証し、ユーザー情報を返す

    クリニックのスタッフ権限（praticien / admin など）は
    app_metadata.role に格納されている。

    Args:
        supabase: Supabaseクライアント
        token: アクセストークン

    Returns:
        Dict[str, Any]: user_id, email, role, staff_role

    Raises:
        TokenValidationError: トークンが無効、期限切れ、または検証失敗時
    """
    try:
        user_response = supabase.auth.get_user(token)
    except Exception as e:
        raise TokenValidationError(f"Jeton d'accès invalide : {str(e)}")

    if not user_response or not user_response.user:
        raise TokenValidationError("Jeton d'accès invalide")

    user = user_response.user
    app_metadata = user.app_metadata or {}

    return {
        "user_id": user.id,
        "email": user.email,
        "role": user.role or "authenticated",
        "staff_role": app_metadata.get("role"),
    }
