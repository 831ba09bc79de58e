from pydantic import BaseModel, Field, field_validator


class ModelConfig(BaseModel):
    args: list[str] = Field(default_factory=list)


class NodeConfig(BaseModel):
    id: str = Field(min_length=1, max_length=128)
    host: str = Field(min_length=1)
    inference_port: int = Field(default=5000, gt=0, le=65535)
    inference_segment: str = ""
    poc_port: int = Field(default=8080, gt=0, le=65535)
    poc_segment: str = ""
    models: dict[str, ModelConfig] = Field(default_factory=dict)

    @field_validator("inference_segment", "poc_segment")
    @classmethod
    def normalize_segment(cls, value: str) -> str:
        cleaned = value.strip().strip("/")
        return f"/{cleaned}" if cleaned else ""

    @property
    def inference_url(self) -> str:
        return format_url(self.host, self.inference_port, self.inference_segment)

    def poc_url(self, version: str = "") -> str:
        version = version.strip().strip("/")
        segment = f"/{version}{self.poc_segment}" if version else self.poc_segment
        return format_url(self.host, self.poc_port, segment)

    def sorted_model_ids(self) -> list[str]:
        return sorted(self.models)


class NodeConfigFile(BaseModel):
    node_version: str = ""
    nodes: list[NodeConfig] = Field(default_factory=list)


class NodeListResponse(BaseModel):
    items: list[NodeConfig]


def format_url(host: str, port: int, segment: str) -> str:
    host = host.strip().rstrip("/")
    if "://" not in host:
        host = f"http://{host}"
    return f"{host}:{port}{segment}"
