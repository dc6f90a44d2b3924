from splunk_operator.types.settings import PRODUCT_PREFIX


class StandaloneResources:
    """Encapsulates the naming scheme used for the resources which the operator manages
    for a Standalone workload."""

    prefix: str = PRODUCT_PREFIX

    @classmethod
    def component_name(self, name: str):
        """Returns the name of the StatefulSet for a Standalone of the given name."""
        return f"{self.prefix}-{name}-standalone"

    @classmethod
    def stateful_set_name(self, name: str):
        return self.component_name(name)

    @classmethod
    def headless_service_name(self, name: str):
        return f"{self.component_name(name)}-headless"

    @classmethod
    def service_name(self, name: str):
        """Returns the name of the client service for a Standalone of the given name."""
        return f"{self.component_name(name)}-service"

    @classmethod
    def namespace_secret_name(self, namespace: str):
        """Returns the name of the admin secret shared by all workloads of a namespace."""
        return f"{self.prefix}-{namespace}-secret"

    @classmethod
    def versioned_secret_prefix(self, name: str):
        return f"{self.component_name(name)}-secret-v"

    @classmethod
    def versioned_secret_name(self, name: str, version: int):
        return f"{self.versioned_secret_prefix(name)}{version}"

    @classmethod
    def smartstore_config_name(self, name: str):
        return f"{self.component_name(name)}-smartstore"

    @classmethod
    def app_list_config_name(self, name: str):
        return f"{self.component_name(name)}-app-list"

    @classmethod
    def pvc_template_name(self, volume: str):
        """Returns the claim template name of the `etc` or `var` volume."""
        return f"pvc-{volume}"

    @classmethod
    def pvc_name_pattern(self, name: str):
        """Returns a regular expression matching every claim of a Standalone."""
        component = self.component_name(name)
        return rf"^(pvc-(etc|var)-{component}-\d+|{self.prefix}-{name}-(etc|var))$"

    @classmethod
    def defaults_config_name(self, name: str):
        return f"{self.component_name(name)}-defaults"
