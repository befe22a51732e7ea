from pandoc_service.main import run

run()
