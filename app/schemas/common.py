"""
共通スキーマ

ユーザー情報・ヘルスチェック・API情報のレスポンスモデル。
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    ユーザー情報スキーマ

    Supabase Authのアクセストークンから取得したユーザー情報を表す。
    """
    user_id: str = Field(..., description="ユーザーUUID")
    email: Optional[str] = Field(None, description="メールアドレス")
    role: str = Field(default="authenticated", description="Supabaseロール")
    staff_role: Optional[str] = Field(None, description="クリニック内の権限（praticien, admin など）")

    model_config = ConfigDict(from_attributes=True)


class HealthResponse(BaseModel):
    """GET /health のレスポンス"""
    status: str = Field(..., description="ステータス（healthy）")
    environment: str = Field(..., description="実行環境")
    version: str = Field(..., description="APIバージョン")
    timestamp: datetime = Field(..., description="レスポンス時刻")


class APIInfo(BaseModel):
    """GET / のレスポンス"""
    title: str = Field(..., description="APIタイトル")
    version: str = Field(..., description="APIバージョン")
    description: str = Field(..., description="API説明")
    docs_url: str = Field(..., description="Swagger UIのURL")
