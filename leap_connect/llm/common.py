"""Model identifiers served by the inference API."""

MISTRAL = "mistral"
MIXTRAL = "mixtral"
LLAMA3 = "llama3"
GPT3_5_TURBO = "gpt-3.5-turbo"
GPT4 = "gpt-4"
GPT4_O = "gpt-4o"

TEXT_EMBEDDING_3_SMALL = "text-embedding-3-small"
TEXT_EMBEDDING_3_LARGE = "text-embedding-3-large"
TEXT_EMBEDDING_ADA_002 = "text-embedding-ada-002"

WHISPER_1 = "whisper-1"
TTS_1 = "tts-1"
TTS_1_HD = "tts-1-hd"

DALL_E_2 = "dall-e-2"
DALL_E_3 = "dall-e-3"
