import logging
from typing import Any, List, Optional
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1DeleteOptions,
)
from splunk_operator.client.base import (
    ObjectStore,
    LabelSelector,
    format_label_selector,
    SECRET,
    SERVICE,
    CONFIG_MAP,
    STATEFUL_SET,
    PERSISTENT_VOLUME_CLAIM,
    STANDALONE,
)
from splunk_operator.types.models.standalone_spec import Standalone
from splunk_operator.types.schemas.standalone import StandaloneSchema
from splunk_operator.utils.errors import translate_api_exception, not_found_error

logger = logging.getLogger(__name__)


class KubernetesObjectStore(ObjectStore):
    """Object store backed by the Kubernetes API (kubernetes_asyncio)."""

    GROUP = "enterprise.splunk.com"
    VERSION = "v4"
    PLURAL = "standalones"

    # kind -> (api attribute, method suffix)
    BUILTIN_KINDS = {
        SECRET: ("core_v1_api", "secret"),
        SERVICE: ("core_v1_api", "service"),
        CONFIG_MAP: ("core_v1_api", "config_map"),
        STATEFUL_SET: ("apps_v1_api", "stateful_set"),
        PERSISTENT_VOLUME_CLAIM: ("core_v1_api", "persistent_volume_claim"),
    }

    _api_client: ApiClient = None
    _core_v1_api: CoreV1Api = None
    _apps_v1_api: AppsV1Api = None
    _custom_objects_api: CustomObjectsApi = None

    def __init__(self, api_client: ApiClient = None):
        self._api_client = api_client
        self._schema = StandaloneSchema()

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            self._api_client = ApiClient()
        return self._api_client

    @property
    def core_v1_api(self) -> CoreV1Api:
        if self._core_v1_api is None:
            self._core_v1_api = CoreV1Api(self.api_client)
        return self._core_v1_api

    @property
    def apps_v1_api(self) -> AppsV1Api:
        if self._apps_v1_api is None:
            self._apps_v1_api = AppsV1Api(self.api_client)
        return self._apps_v1_api

    @property
    def custom_objects_api(self) -> CustomObjectsApi:
        if self._custom_objects_api is None:
            self._custom_objects_api = CustomObjectsApi(self.api_client)
        return self._custom_objects_api

    def _method(self, kind: str, template: str):
        try:
            api_attr, suffix = self.BUILTIN_KINDS[kind]
        except KeyError:
            raise ValueError(f"Unsupported kind `{kind}`")
        return getattr(getattr(self, api_attr), template.format(suffix))

    def _to_standalone(self, obj: dict) -> Standalone:
        return self._schema.load(obj)

    def _from_standalone(self, standalone: Standalone) -> dict:
        return self._schema.dump(standalone)

    async def get(self, kind: str, namespace: str, name: str) -> Optional[Any]:
        try:
            if kind == STANDALONE:
                obj = await self.custom_objects_api.get_namespaced_custom_object(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    name=name,
                )
                return self._to_standalone(obj)
            read = self._method(kind, "read_namespaced_{}")
            return await read(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise translate_api_exception(ex, kind, name)

    async def list(
        self, kind: str, namespace: str, label_selector: LabelSelector = None
    ) -> List[Any]:
        selector = format_label_selector(label_selector)
        try:
            if kind == STANDALONE:
                result = await self.custom_objects_api.list_namespaced_custom_object(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    label_selector=selector,
                )
                return [self._to_standalone(item) for item in result.get("items", [])]
            list_ = self._method(kind, "list_namespaced_{}")
            if selector:
                result = await list_(namespace=namespace, label_selector=selector)
            else:
                result = await list_(namespace=namespace)
            return list(result.items or [])
        except ApiException as ex:
            raise translate_api_exception(ex, kind, namespace)

    async def create(self, kind: str, body: Any) -> Any:
        name, namespace = body.metadata.name, body.metadata.namespace
        try:
            if kind == STANDALONE:
                obj = await self.custom_objects_api.create_namespaced_custom_object(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    body=self._from_standalone(body),
                )
                return self._to_standalone(obj)
            create = self._method(kind, "create_namespaced_{}")
            return await create(namespace=namespace, body=body)
        except ApiException as ex:
            raise translate_api_exception(ex, kind, name)

    async def update(self, kind: str, body: Any) -> Any:
        name, namespace = body.metadata.name, body.metadata.namespace
        try:
            if kind == STANDALONE:
                obj = await self.custom_objects_api.replace_namespaced_custom_object(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    name=name,
                    body=self._from_standalone(body),
                )
                return self._to_standalone(obj)
            replace = self._method(kind, "replace_namespaced_{}")
            return await replace(name=name, namespace=namespace, body=body)
        except ApiException as ex:
            raise translate_api_exception(ex, kind, name)

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        try:
            if kind == STANDALONE:
                await self.custom_objects_api.delete_namespaced_custom_object(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    name=name,
                )
                return
            delete = self._method(kind, "delete_namespaced_{}")
            await delete(name=name, namespace=namespace, body=V1DeleteOptions())
        except ApiException as ex:
            if not_found_error(ex):
                # already gone
                return
            raise translate_api_exception(ex, kind, name)

    async def update_status(self, kind: str, body: Any) -> Any:
        name, namespace = body.metadata.name, body.metadata.namespace
        try:
            if kind == STANDALONE:
                obj = await self.custom_objects_api.replace_namespaced_custom_object_status(
                    group=self.GROUP,
                    version=self.VERSION,
                    namespace=namespace,
                    plural=self.PLURAL,
                    name=name,
                    body=self._from_standalone(body),
                )
                return self._to_standalone(obj)
            replace = self._method(kind, "replace_namespaced_{}_status")
            return await replace(name=name, namespace=namespace, body=body)
        except ApiException as ex:
            raise translate_api_exception(ex, kind, name)

    async def close(self):
        if self._api_client is not None:
            await self._api_client.close()
