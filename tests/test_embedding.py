"""Tests for embedding providers."""

import io
import json
from types import SimpleNamespace

import pytest

from code_context.common.config import EmbeddingProviderName, create_mcp_config, ContextSettings
from code_context.embedding.base import EmbeddingError, to_embedding_vectors
from code_context.embedding.bedrock_backend import BedrockEmbedding
from code_context.embedding.factory import create_embedding
from code_context.embedding.gemini_backend import GeminiEmbedding
from code_context.embedding.ollama_backend import OllamaEmbedding
from code_context.embedding.openai_backend import OpenAIEmbedding
from code_context.embedding.voyageai_backend import VoyageAIEmbedding

from tests.fakes import FakeEmbedding, bedrock_response, openai_response


class FakeOpenAIClient:
    def __init__(self, reverse=False, error=None):
        self.calls = []
        self.reverse = reverse
        self.error = error
        self.embeddings = SimpleNamespace(create=self.create)

    def create(self, model, input):
        if self.error:
            raise self.error
        self.calls.append(input)
        return openai_response([[float(i), 1.0, 2.0] for i in range(len(input))], reverse=self.reverse)


class FakeVoyageClient:
    def __init__(self):
        self.calls = []

    def embed(self, texts, model, input_type):
        self.calls.append({"texts": texts, "model": model, "input_type": input_type})
        return SimpleNamespace(embeddings=[[0.1, 0.2] for _ in texts])


class FakeGeminiClient:
    def __init__(self):
        self.calls = []
        self.models = SimpleNamespace(embed_content=self.embed_content)

    def embed_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        return SimpleNamespace(embeddings=[SimpleNamespace(values=[0.3] * 8) for _ in contents])


class FakeOllamaClient:
    def __init__(self, dimension=768):
        self.calls = []
        self.dimension = dimension

    def embed(self, model, input):
        self.calls.append(input)
        return {"embeddings": [[0.01] * self.dimension for _ in input]}


class FakeBedrockClient:
    def __init__(self, payload=None, raw_body=None):
        self.calls = []
        self.payload = payload
        self.raw_body = raw_body

    def invoke_model(self, modelId, contentType, accept, body):
        request = json.loads(body)
        self.calls.append({"modelId": modelId, "body": request})
        if self.raw_body is not None:
            return {"body": io.BytesIO(self.raw_body)}
        if self.payload is not None:
            return bedrock_response(self.payload)
        if "texts" in request:
            return bedrock_response({"embeddings": [[0.5] * 4 for _ in request["texts"]]})
        return bedrock_response({"embedding": [0.25] * 4})


class TestEmbeddingBase:
    """Behaviour shared by every provider."""

    def test_embed_batch_preserves_order_and_batches(self):
        embedding = FakeEmbedding()
        texts = ["a", "bb", "ccc", "dddd", "eeeee", "ffffff", "g"]

        vectors = embedding.embed_batch(texts)

        assert [len(call) for call in embedding.requests] == [3, 3, 1]
        assert [v.vector[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 1.0]

    def test_empty_text_becomes_single_space(self):
        embedding = FakeEmbedding()
        embedding.embed("")
        assert embedding.requests == [[" "]]

    def test_long_text_truncated(self):
        embedding = FakeEmbedding()
        embedding.max_tokens = 10
        embedding.embed("x" * 100)
        assert embedding.requests[0][0] == "x" * 40

    def test_embed_batch_empty(self):
        embedding = FakeEmbedding()
        assert embedding.embed_batch([]) == []
        assert embedding.requests == []

    def test_detect_dimension_probes_once(self):
        embedding = FakeEmbedding(dimension=6)
        assert embedding.get_dimension() == 0
        assert embedding.detect_dimension() == 6
        assert embedding.detect_dimension() == 6
        assert len(embedding.requests) == 1

    def test_count_mismatch_rejected(self):
        with pytest.raises(EmbeddingError, match="2 embeddings for 3 texts"):
            to_embedding_vectors([[1.0], [2.0]], 3, "Fake")

    def test_empty_row_rejected(self):
        with pytest.raises(EmbeddingError):
            to_embedding_vectors([[]], 1, "Fake")

    @pytest.mark.parametrize("row", [[None, 1.0], ["x", "y"]])
    def test_non_numeric_row_rejected(self, row):
        with pytest.raises(EmbeddingError, match="non-numeric"):
            to_embedding_vectors([row], 1, "Fake")

    def test_non_numeric_payload_from_provider(self):
        class NoneEmbedding(FakeEmbedding):
            def _request_embeddings(self, texts):
                return [[None, 1.0] for _ in texts]

        with pytest.raises(EmbeddingError, match="non-numeric") as excinfo:
            NoneEmbedding().embed("hello")

        assert isinstance(excinfo.value.__cause__, TypeError)

    def test_inconsistent_dimension_rejected(self):
        with pytest.raises(EmbeddingError, match="dimension mismatch"):
            to_embedding_vectors([[1.0, 2.0], [1.0]], 2, "Fake")


class TestOpenAIEmbedding:
    def test_results_sorted_by_index(self):
        client = FakeOpenAIClient(reverse=True)
        embedding = OpenAIEmbedding(client=client)

        vectors = embedding.embed_batch(["a", "b", "c"])

        assert [v.vector[0] for v in vectors] == [0.0, 1.0, 2.0]
        assert embedding.get_dimension() == 1536

    def test_sdk_error_wrapped(self):
        error = RuntimeError("rate limited")
        embedding = OpenAIEmbedding(client=FakeOpenAIClient(error=error))

        with pytest.raises(EmbeddingError, match="rate limited") as excinfo:
            embedding.embed("hello")

        assert excinfo.value.__cause__ is error

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIEmbedding(api_key=None)

    def test_provider_name(self):
        assert OpenAIEmbedding(client=FakeOpenAIClient()).get_provider() == "OpenAI"


class TestVoyageAIEmbedding:
    def test_embeds_documents_in_batches_of_128(self):
        client = FakeVoyageClient()
        embedding = VoyageAIEmbedding(client=client)

        vectors = embedding.embed_batch(["text"] * 130)

        assert len(vectors) == 130
        assert [len(call["texts"]) for call in client.calls] == [128, 2]
        assert client.calls[0]["input_type"] == "document"
        assert client.calls[0]["model"] == "voyage-code-3"

    def test_known_dimensions(self):
        assert VoyageAIEmbedding(model="voyage-3-lite", client=FakeVoyageClient()).get_dimension() == 512


class TestGeminiEmbedding:
    def test_reads_values(self):
        client = FakeGeminiClient()
        embedding = GeminiEmbedding(client=client)

        vector = embedding.embed("hello")

        assert vector.dimension == 8
        assert client.calls[0]["model"] == "gemini-embedding-001"
        assert client.calls[0]["config"] is None
        assert embedding.get_dimension() == 3072

    def test_output_dimensionality(self):
        client = FakeGeminiClient()
        embedding = GeminiEmbedding(output_dimensionality=768, client=client)

        embedding.embed("hello")

        assert embedding.get_dimension() == 768
        assert client.calls[0]["config"].output_dimensionality == 768


class TestOllamaEmbedding:
    def test_dimension_detected_from_probe(self):
        client = FakeOllamaClient(dimension=768)
        embedding = OllamaEmbedding(client=client)

        assert embedding.get_dimension() == 0
        assert embedding.detect_dimension() == 768
        assert client.calls == [["test"]]

    def test_missing_embeddings_key(self):
        class BrokenClient:
            def embed(self, model, input):
                return {}

        with pytest.raises(EmbeddingError, match="missing 'embeddings'"):
            OllamaEmbedding(client=BrokenClient()).embed("hello")


class TestBedrockEmbedding:
    def test_titan_sends_one_text_per_call(self):
        client = FakeBedrockClient()
        embedding = BedrockEmbedding(client=client)

        vectors = embedding.embed_batch(["one", "two", "three"])

        assert len(vectors) == 3
        assert [call["body"]["inputText"] for call in client.calls] == ["one", "two", "three"]
        assert client.calls[0]["body"]["normalize"] is True
        assert client.calls[0]["modelId"] == "amazon.titan-embed-text-v2:0"

    def test_titan_v2_dimensions(self):
        client = FakeBedrockClient()
        embedding = BedrockEmbedding(dimensions=512, client=client)

        embedding.embed("x")

        assert client.calls[0]["body"]["dimensions"] == 512
        assert embedding.get_dimension() == 512

    def test_titan_v1_body(self):
        client = FakeBedrockClient()
        embedding = BedrockEmbedding(model="amazon.titan-embed-text-v1", client=client)

        embedding.embed("x")

        assert client.calls[0]["body"] == {"inputText": "x"}
        assert embedding.get_dimension() == 1536

    def test_cohere_batches_of_25(self):
        client = FakeBedrockClient()
        embedding = BedrockEmbedding(model="cohere.embed-english-v3", client=client)

        vectors = embedding.embed_batch(["t"] * 30)

        assert len(vectors) == 30
        assert [len(call["body"]["texts"]) for call in client.calls] == [25, 5]
        assert client.calls[0]["body"]["input_type"] == "search_document"

    def test_unsupported_model(self):
        with pytest.raises(EmbeddingError, match="Unsupported Bedrock embedding model"):
            BedrockEmbedding(model="meta.llama3", client=FakeBedrockClient())

    def test_empty_body(self):
        embedding = BedrockEmbedding(client=FakeBedrockClient(raw_body=b""))
        with pytest.raises(EmbeddingError, match="empty body"):
            embedding.embed("x")

    def test_missing_embedding_field(self):
        embedding = BedrockEmbedding(client=FakeBedrockClient(payload={"inputTextTokenCount": 1}))
        with pytest.raises(EmbeddingError, match="missing 'embedding'"):
            embedding.embed("x")

    def test_provider_and_model_info(self):
        embedding = BedrockEmbedding(region="eu-central-1", client=FakeBedrockClient())

        assert embedding.get_provider() == "bedrock:amazon.titan-embed-text-v2:0"
        info = embedding.get_model_info()
        assert info["region"] == "eu-central-1"
        assert info["dimension"] == 1024
        assert info["max_batch_size"] == 1
        assert "cohere.embed-english-v3" in BedrockEmbedding.get_available_models()


class TestEmbeddingFactory:
    ENV_VARS = [
        "EMBEDDING_PROVIDER", "EMBEDDING_MODEL", "OPENAI_API_KEY", "VOYAGEAI_API_KEY",
        "GEMINI_API_KEY", "AWS_REGION", "AWS_ACCESS_KEY_ID", "OLLAMA_HOST", "OLLAMA_MODEL",
        "BEDROCK_EMBEDDING_MODEL", "S3_VECTORS_BUCKET_NAME",
    ]

    @pytest.fixture
    def env(self, monkeypatch):
        for name in self.ENV_VARS:
            monkeypatch.delenv(name, raising=False)
        return monkeypatch

    def config(self):
        return create_mcp_config(ContextSettings(_env_file=None))

    @pytest.mark.parametrize("provider,env_var", [
        ("OpenAI", "OPENAI_API_KEY"),
        ("VoyageAI", "VOYAGEAI_API_KEY"),
        ("Gemini", "GEMINI_API_KEY"),
    ])
    def test_missing_key_names_env_var(self, env, provider, env_var):
        env.setenv("EMBEDDING_PROVIDER", provider)
        with pytest.raises(ValueError, match=env_var):
            create_embedding(self.config())

    def test_ollama_uses_configured_host_and_model(self, env):
        env.setenv("EMBEDDING_PROVIDER", "Ollama")
        env.setenv("OLLAMA_MODEL", "mxbai-embed-large")

        embedding = create_embedding(self.config(), client=FakeOllamaClient())

        assert isinstance(embedding, OllamaEmbedding)
        assert embedding.model == "mxbai-embed-large"
        assert embedding.host == "http://127.0.0.1:11434"

    def test_bedrock_selected_from_aws_region(self, env):
        env.setenv("AWS_REGION", "us-west-2")

        config = self.config()
        embedding = create_embedding(config, client=FakeBedrockClient())

        assert config.embedding_provider == EmbeddingProviderName.BEDROCK
        assert isinstance(embedding, BedrockEmbedding)
        assert embedding.region == "us-west-2"

    def test_openai_with_key(self, env):
        env.setenv("OPENAI_API_KEY", "sk-test")
        env.setenv("EMBEDDING_MODEL", "text-embedding-3-large")

        embedding = create_embedding(self.config(), client=FakeOpenAIClient())

        assert isinstance(embedding, OpenAIEmbedding)
        assert embedding.get_dimension() == 3072
