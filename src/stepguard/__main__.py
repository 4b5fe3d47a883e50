"""stepguardのコマンドラインエントリポイント。"""

if __name__ == "__main__":
    from stepguard.cli import app

    app()
