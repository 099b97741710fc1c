"""
ロギング設定モジュール

アプリケーション共通のロガーと、レポート閲覧の監査ログを提供する。
"""
import logging
from typing import Optional

from app.core.config import settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    ルートロガー "app" にコンソールハンドラを設定する

    Cloud Runなどのコンテナ環境では標準出力がそのままログになる。
    複数回呼ばれてもハンドラは一つだけ登録する。
    """
    global _configured
    root = logging.getLogger("app")
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """モジュール用のロガーを取得する（"app." 配下に揃える）"""
    if not name.startswith("app"):
        name = f"app.{name}"
    return logging.getLogger(name)


audit_logger = get_logger("app.audit")


def log_report_access(
    report: str,
    user_id: Optional[str],
    user_email: Optional[str] = None,
    period: Optional[str] = None,
    success: bool = True,
) -> None:
    """
    レポート閲覧を監査ログに記録する

    Args:
        report: レポート種別（profitability, cost_analyses, export）
        user_id: ユーザーID
        user_email: メールアドレス
        period: 選択された期間
        success: 取得に成功したかどうか
    """
    status_str = "SUCCESS" if success else "FAILED"
    audit_logger.info(
        f"{status_str} | VIEW | user:{user_email or user_id or 'anonymous'} | "
        f"report:{report} | period:{period or 'N/A'}"
    )
