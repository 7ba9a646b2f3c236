from structiq.llms.base_llm import BaseLLM, GenerateResult
from structiq.llms.generate_options import GenerateOptions
from structiq.llms.mock_llm import MockLLM

__all__ = ["BaseLLM", "GenerateOptions", "GenerateResult", "MockLLM"]
