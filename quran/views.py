from rest_framework import serializers
from rest_framework.decorators import api_view
from rest_framework.response import Response
from .models import Surah


class SurahSerializer(serializers.ModelSerializer):
    class Meta:
        model = Surah
        fields = ["number", "name_simple", "name_arabic", "verses_count", "revelation_place"]


@api_view(["GET"])
def surahs(request):
    return Response({"success": True, "surahs": SurahSerializer(Surah.objects.all(), many=True).data})
