"""
環境変数管理モジュール

pydantic-settingsを使用して環境変数を型安全に管理する。
.envファイルからの自動読み込みに対応。
"""
from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    アプリケーション設定クラス

    環境変数または.envファイルから設定を読み込む。
    """

    # Supabase設定
    SUPABASE_URL: str
    # 匿名キー（RLSが適用される）
    SUPABASE_ANON_KEY: str
    # サービスロールキー（RLSをバイパス）
    SUPABASE_SERVICE_ROLE_KEY: str

    # アプリケーション設定
    APP_ENV: str = "development"
    DEBUG: bool = True
    # 許可するCORSオリジン（カンマ区切り）
    ALLOWED_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # APIメタ情報
    API_TITLE: str = "Clinique - API de rentabilité"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "施術別・月別の収益性レポートを提供するバックエンドAPI"

    # 表示設定
    # 金額表示のロケール（fr-FR, en-US, ja-JP）
    DISPLAY_LOCALE: str = "fr-FR"
    CURRENCY: str = "EUR"

    # 収益性計算設定
    # 1施術あたりの推定原価率（施術価格に対する割合）
    COST_ESTIMATE_RATIO: Decimal = Decimal("0.3")
    # 画面に表示するコスト分析の件数
    COST_ANALYSIS_DISPLAY_LIMIT: int = 5

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        許可されたオリジンをリストで取得

        Returns:
            List[str]: 許可されたオリジンのリスト
        """
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    設定インスタンスを取得（シングルトン）

    Returns:
        Settings: アプリケーション設定
    """
    return Settings()


# グローバル設定インスタンス（簡易アクセス用）
settings = get_settings()
