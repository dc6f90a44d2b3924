from typing import Dict


class ResourceLabels:
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"

    KUBERNETES_PART_OF_LABEL = KUBERNETES_DOMAIN + "part-of"

    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"


class Labels(ResourceLabels):
    OPERATOR_NAME = "splunk-operator"

    VERSIONED_SECRETS_COMPONENT = "versionedSecrets"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels are dictionary."""
        return self._labels.copy()

    def as_str(self):
        """Return labels as comma separated string."""
        return ",".join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_instance(self, instance_name: str) -> "Labels":
        return self.include(
            self.KUBERNETES_INSTANCE_LABEL,
            self.get_or_valid_instance_label_value(instance_name),
        )

    def include_kubernetes_part_of(self, part_of: str) -> "Labels":
        return self.include(
            self.KUBERNETES_PART_OF_LABEL,
            self.get_or_valid_instance_label_value(part_of),
        )

    def include_kubernetes_component(self, component: str) -> "Labels":
        return self.include(self.KUBERNETES_COMPONENT_LABEL, component)

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def get_or_valid_instance_label_value(self, instance: str):
        """Validates the instance name and if needed modifies it to make it a valid Label value:
        * (([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?
        * 63 characters max
        """
        if not instance:
            return ""
        value = instance[:63]
        while value and value[-1] in (".", "-", "_"):
            value = value[:-1]
        return value

    def contains(self, other: "Labels"):
        """Returns True if all labels in `other` are contained."""
        return all(
            key in self._labels and self._labels[key] == value
            for key, value in other.as_dict().items()
        )

    def selector_labels(self) -> "Labels":
        """Labels used to select the pods of a workload."""
        return Labels(dict(self._labels))

    def instance(self) -> str:
        return self._labels.get(self.KUBERNETES_INSTANCE_LABEL)

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def empty(cls) -> "Labels":
        return Labels({})

    @classmethod
    def generate_default_labels(
        cls,
        component_name: str,
        component_type: str,
        managed_by: str = OPERATOR_NAME,
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_kubernetes_component(component_type)
            .include_kubernetes_instance(component_name)
            .include_kubernetes_managed_by(managed_by)
            .include_kubernetes_name(component_type)
            .include_kubernetes_part_of(component_name)
        )

    @classmethod
    def versioned_secret_labels(cls) -> "Labels":
        return (
            Labels()
            .include_kubernetes_component(cls.VERSIONED_SECRETS_COMPONENT)
            .include_kubernetes_managed_by(cls.OPERATOR_NAME)
        )
