from app import create_app

app = create_app()


if __name__ == "__main__":
    cfg = app.config["CFG"]
    app.run(host=cfg.HOST, port=cfg.PORT)
