import django_filters

from modules.products.models import Product, ProductCategory


class ProductFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    category = django_filters.ChoiceFilter(choices=ProductCategory.choices)
    featured = django_filters.BooleanFilter(field_name="featured")
    in_stock = django_filters.BooleanFilter(field_name="in_stock")
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr="lte")

    class Meta:
        model = Product
        fields = ["name", "category", "featured", "in_stock", "min_price", "max_price"]
