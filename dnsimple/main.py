"""dnsimple - メインエントリーポイント."""

import asyncio
import contextlib
import signal
import sys
import traceback
from pathlib import Path

from . import constants
from .config import load_config
from .logger import setup_logging
from .server import DNSServer


async def run_server(server: DNSServer) -> None:
    """シグナルハンドラを登録してサーバーを実行し、終了時に必ず停止処理を行う.

    Args:
        server: 実行するDNSサーバー
    """
    loop = asyncio.get_event_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    for sig in signals:
        # Windowsではadd_signal_handler未対応（KeyboardInterruptで終了する）
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, server.request_stop)

    try:
        await server.start()
    finally:
        # 停止処理（キャッシュの最終保存とソケット解放）
        await server.stop()
        for sig in signals:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)


def main() -> None:
    """メイン関数."""
    # 設定ファイルパス
    config_path = Path(constants.get_config_path())

    try:
        config = load_config(config_path)
        setup_logging(config.log_level)

        server = DNSServer(config)
        asyncio.run(run_server(server))
    except KeyboardInterrupt:
        print("\n\nShutdown requested... exiting")
        sys.exit(0)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
