import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o.strip()]
    PORT = int(os.environ.get('PORT', '3000'))
    # Generative question source; unset key disables it entirely
    GROQ_API_KEY = os.environ.get('GROQ_API_KEY')
    GROQ_API_URL = os.environ.get('GROQ_API_URL', 'https://api.groq.com/openai/v1/chat/completions')
    GROQ_MODEL = os.environ.get('GROQ_MODEL', 'llama-3.3-70b-versatile')
    GENERATION_MAX_ATTEMPTS = int(os.environ.get('GENERATION_MAX_ATTEMPTS', '10'))
    GENERATION_TIMEOUT_SEC = float(os.environ.get('GENERATION_TIMEOUT_SEC', '15'))
    # Extra questions requested per call; accepted extras go to the prefetch cache
    GENERATION_SURPLUS = int(os.environ.get('GENERATION_SURPLUS', '2'))
    GENERATION_TEMPERATURE = float(os.environ.get('GENERATION_TEMPERATURE', '1.2'))
    SIMILARITY_THRESHOLD = float(os.environ.get('SIMILARITY_THRESHOLD', '0.7'))
    QUESTION_CACHE_MAX = int(os.environ.get('QUESTION_CACHE_MAX', '50'))
    QUESTIONS_FILE = os.environ.get('QUESTIONS_FILE', 'questions.json')
    # Optional: fixed seed for shuffles/draws. Unset uses system entropy.
    RANDOM_SEED = int(os.environ['RANDOM_SEED']) if os.environ.get('RANDOM_SEED') else None
