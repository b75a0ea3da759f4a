from jobber_agent import create_app

app = create_app()

# gunicorn: use a single worker (gunicorn -w 1 wsgi:app); the queue,
# stats and decision history live in process memory
