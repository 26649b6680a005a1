import django_filters
from django.db.models import Q

from event_checkin.participants.models import Participant


class ParticipantFilter(django_filters.FilterSet):
    area = django_filters.CharFilter(field_name="area", lookup_expr="iexact")
    participant_type = django_filters.ChoiceFilter(
        choices=Participant.ParticipantType.choices
    )
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Participant
        fields = ["area", "participant_type", "search"]

    def filter_search(self, queryset, name, value):
        term = (value or "").strip()
        if not term:
            return queryset
        return queryset.filter(
            Q(full_name__icontains=term)
            | Q(email__icontains=term)
            | Q(area__icontains=term)
            | Q(national_id__icontains=term)
        )
